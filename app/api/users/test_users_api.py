# app/api/users/test_users_api.py
import io


def _user_doc(db, user_id):
    return db.collection('users').document(user_id).get().to_dict()


def test_get_profile_anonymous(client, make_user):
    alice = make_user('alice')

    response = client.get(f"/api/users/{alice['user_id']}")

    assert response.status_code == 200
    body = response.get_json()
    assert body['username'] == 'alice'
    assert body['post_count'] == 0
    assert body['relationship'] is None
    assert 'email' not in body


def test_get_profile_includes_relationship_flags(client, app, make_user, auth_headers):
    alice, bob = make_user('alice'), make_user('bob')
    relationships = app.services['relationships']
    relationships.follow(alice['user_id'], bob['user_id'])
    relationships.follow(bob['user_id'], alice['user_id'])

    response = client.get(f"/api/users/{bob['user_id']}", headers=auth_headers(alice['user_id']))

    flags = response.get_json()['relationship']
    assert flags['is_following'] is True
    assert flags['is_followed_by'] is True
    assert flags['is_friend'] is True
    assert flags['friend_request_sent'] is False
    assert flags['is_blocked'] is False
    assert response.get_json()['follower_count'] == 1


def test_get_unknown_profile_is_404(client):
    response = client.get('/api/users/missing')

    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'USER_NOT_FOUND'


def test_update_profile_partial(client, db, make_user, auth_headers):
    alice = make_user('alice')
    headers = auth_headers(alice['user_id'])

    response = client.put('/api/users/profile', json={"name": "Alice Park", "bio": "hello"}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['name'] == 'Alice Park'
    assert _user_doc(db, alice['user_id'])['name_lower'] == 'alice park'

    cleared = client.put('/api/users/profile', json={"bio": ""}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.get_json()['bio'] == ''
    assert cleared.get_json()['name'] == 'Alice Park'


def test_update_profile_rejects_blank_name(client, make_user, auth_headers):
    alice = make_user('alice')

    response = client.put('/api/users/profile', json={"name": "   "}, headers=auth_headers(alice['user_id']))

    assert response.status_code == 400


def test_search_matches_username_and_name_prefix(client, make_user, auth_headers):
    me = make_user('searcher')
    make_user('alice')
    make_user('alina')
    make_user('bob', name='Alistair Bob')
    make_user('carol')

    response = client.get('/api/users/search?query=ALI', headers=auth_headers(me['user_id']))

    assert response.status_code == 200
    usernames = [u['username'] for u in response.get_json()['users']]
    assert usernames == ['alice', 'alina', 'bob']


def test_search_excludes_the_caller(client, make_user, auth_headers):
    alice = make_user('alice')
    make_user('alina')

    response = client.get('/api/users/search?query=al', headers=auth_headers(alice['user_id']))

    assert [u['username'] for u in response.get_json()['users']] == ['alina']


def test_search_requires_query(client):
    assert client.get('/api/users/search').status_code == 400
    assert client.get('/api/users/search?query=%20').status_code == 400


def test_upload_profile_picture(client, db, bucket, make_user, auth_headers):
    alice = make_user('alice')

    response = client.post(
        '/api/users/upload-profile-picture',
        data={'image': (io.BytesIO(b'\x89PNG fake'), 'me.png', 'image/png')},
        content_type='multipart/form-data',
        headers=auth_headers(alice['user_id']),
    )

    assert response.status_code == 200
    url = response.get_json()['profile_picture']
    assert url.startswith(f"https://storage.googleapis.com/test-bucket/profile_pictures/{alice['user_id']}/")
    assert _user_doc(db, alice['user_id'])['profile_picture'] == url
    assert len(bucket.blobs) == 1


def test_upload_profile_picture_replaces_previous_blob(client, bucket, make_user, auth_headers):
    alice = make_user('alice')
    headers = auth_headers(alice['user_id'])

    for name in ('first.png', 'second.png'):
        client.post(
            '/api/users/upload-profile-picture',
            data={'image': (io.BytesIO(b'img'), name, 'image/png')},
            content_type='multipart/form-data',
            headers=headers,
        )

    assert len(bucket.blobs) == 1


def test_upload_profile_picture_rejects_wrong_type(client, make_user, auth_headers):
    alice = make_user('alice')

    response = client.post(
        '/api/users/upload-profile-picture',
        data={'image': (io.BytesIO(b'text'), 'notes.txt', 'text/plain')},
        content_type='multipart/form-data',
        headers=auth_headers(alice['user_id']),
    )

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'INVALID_MEDIA'


def test_finalize_profile_image_upload(client, bucket, make_user, auth_headers):
    alice = make_user('alice')
    headers = auth_headers(alice['user_id'])
    folder = f"profile_pictures/{alice['user_id']}"

    missing = client.patch('/api/users/me/profile-image', json={"file_path": f"{folder}/none.png"}, headers=headers)
    assert missing.status_code == 404

    bucket.blobs[f'{folder}/me.png'] = (b'img', 'image/png')
    response = client.patch('/api/users/me/profile-image', json={"file_path": f"{folder}/me.png"}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['profile_picture'].endswith(f'{folder}/me.png')
    assert f'{folder}/me.png' in bucket.public


def test_profile_image_must_come_from_own_folder(client, bucket, make_user, auth_headers):
    alice, bob = make_user('alice'), make_user('bob')
    headers = auth_headers(alice['user_id'])
    bucket.blobs[f"profile_pictures/{bob['user_id']}/bob.png"] = (b'img', 'image/png')
    bucket.blobs[f"posts/{alice['user_id']}/post.png"] = (b'img', 'image/png')

    for path in (f"profile_pictures/{bob['user_id']}/bob.png", f"posts/{alice['user_id']}/post.png"):
        response = client.patch('/api/users/me/profile-image', json={"file_path": path}, headers=headers)
        assert response.status_code == 403
        assert response.get_json()['error_code'] == 'FORBIDDEN'
    assert bucket.public == set()


def test_delete_account_removes_edges_and_fixes_counters(client, app, db, make_user, auth_headers):
    alice, bob, carol = make_user('alice'), make_user('bob'), make_user('carol')
    relationships = app.services['relationships']
    relationships.follow(alice['user_id'], bob['user_id'])
    relationships.follow(bob['user_id'], carol['user_id'])
    relationships.send_friend_request(carol['user_id'], alice['user_id'])

    response = client.delete('/api/users/me', headers=auth_headers(bob['user_id']))

    assert response.status_code == 204
    assert not db.collection('users').document(bob['user_id']).get().exists
    assert _user_doc(db, alice['user_id'])['following_count'] == 0
    assert _user_doc(db, carol['user_id'])['follower_count'] == 0
    remaining = [doc.to_dict() for doc in db.collection('relationships').stream()]
    assert remaining == [r for r in remaining if bob['user_id'] not in (r['subject_id'], r['object_id'])]
    assert len(remaining) == 1
