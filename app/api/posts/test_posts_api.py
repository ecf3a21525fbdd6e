# app/api/posts/test_posts_api.py
"""
Posts, likes and comments.

Run: python -m pytest app/api/posts/test_posts_api.py -v
"""
import io

import pytest


@pytest.fixture
def author(make_user):
    return make_user('alice')


@pytest.fixture
def reader(make_user):
    return make_user('bob')


def _create(client, headers, description="hello world", **extra):
    payload = {"description": description}
    payload.update(extra)
    return client.post('/api/posts/', json=payload, headers=headers)


def test_create_post_from_json(client, author, auth_headers):
    response = _create(client, auth_headers(author['user_id']), mood="happy")

    assert response.status_code == 201
    post = response.get_json()
    assert post['author']['username'] == 'alice'
    assert post['mood'] == 'happy'
    assert post['image_urls'] == []
    assert post['like_count'] == 0 and post['comment_count'] == 0
    assert post['is_liked'] is False


def test_create_post_with_presigned_file_paths(client, bucket, author, auth_headers):
    path = f"posts/{author['user_id']}/a.png"
    bucket.blobs[path] = (b'img', 'image/png')

    response = _create(client, auth_headers(author['user_id']), file_paths=[path])

    assert response.status_code == 201
    assert response.get_json()['image_urls'] == [f'https://storage.googleapis.com/test-bucket/{path}']

    missing = _create(client, auth_headers(author['user_id']), file_paths=[f"posts/{author['user_id']}/none.png"])
    assert missing.status_code == 404


def test_create_post_cannot_publish_someone_elses_upload(client, bucket, author, reader, auth_headers):
    path = f"posts/{author['user_id']}/private.png"
    bucket.blobs[path] = (b'img', 'image/png')

    response = _create(client, auth_headers(reader['user_id']), file_paths=[path])

    assert response.status_code == 403
    assert response.get_json()['error_code'] == 'FORBIDDEN'
    assert path not in bucket.public


def test_create_post_multipart_uploads_images(client, bucket, author, auth_headers):
    response = client.post(
        '/api/posts/',
        data={
            'description': 'two pictures',
            'images': [
                (io.BytesIO(b'one'), 'one.jpg', 'image/jpeg'),
                (io.BytesIO(b'two'), 'two.png', 'image/png'),
            ],
        },
        content_type='multipart/form-data',
        headers=auth_headers(author['user_id']),
    )

    assert response.status_code == 201
    urls = response.get_json()['image_urls']
    assert len(urls) == 2
    assert all(f"/posts/{author['user_id']}/" in url for url in urls)
    assert len(bucket.blobs) == 2


def test_create_post_multipart_rejects_too_many_images(client, author, auth_headers):
    images = [(io.BytesIO(b'x'), f'{i}.png', 'image/png') for i in range(6)]

    response = client.post(
        '/api/posts/',
        data={'description': 'too many', 'images': images},
        content_type='multipart/form-data',
        headers=auth_headers(author['user_id']),
    )

    assert response.status_code == 400


def test_create_post_validation(client, author, auth_headers):
    response = _create(client, auth_headers(author['user_id']), description="")

    assert response.status_code == 400
    assert 'description' in response.get_json()['details']


def test_feed_pagination_uses_cursor(client, author, auth_headers):
    headers = auth_headers(author['user_id'])
    created = [_create(client, headers, description=f"post {i}").get_json()['post_id'] for i in range(3)]

    first = client.get('/api/posts/?limit=2').get_json()
    assert len(first['posts']) == 2
    assert first['next_cursor'] == first['posts'][-1]['post_id']

    second = client.get(f"/api/posts/?limit=2&cursor={first['next_cursor']}").get_json()
    assert len(second['posts']) == 1
    assert second['next_cursor'] is None

    seen = [p['post_id'] for p in first['posts'] + second['posts']]
    assert sorted(seen) == sorted(created)


@pytest.mark.parametrize('limit', [0, -5])
def test_non_positive_limit_returns_one_item(client, author, auth_headers, limit):
    headers = auth_headers(author['user_id'])
    post_id = _create(client, headers, description="first").get_json()['post_id']
    _create(client, headers, description="second")
    for text in ("a", "b"):
        client.post(f"/api/posts/{post_id}/comments", json={"text": text}, headers=headers)

    feed = client.get(f'/api/posts/?limit={limit}')
    assert feed.status_code == 200
    assert len(feed.get_json()['posts']) == 1
    assert feed.get_json()['next_cursor'] is not None

    by_user = client.get(f"/api/posts/users/{author['user_id']}/posts?limit={limit}")
    assert by_user.status_code == 200
    assert len(by_user.get_json()['posts']) == 1

    comments = client.get(f"/api/posts/{post_id}/comments?limit={limit}")
    assert comments.status_code == 200
    assert len(comments.get_json()['comments']) == 1


def test_posts_by_user(client, author, reader, auth_headers):
    _create(client, auth_headers(author['user_id']), description="mine")
    _create(client, auth_headers(reader['user_id']), description="theirs")

    response = client.get(f"/api/posts/users/{author['user_id']}/posts")

    assert [p['description'] for p in response.get_json()['posts']] == ['mine']


def test_like_toggle_updates_count_and_notifies_author(client, db, author, reader, auth_headers):
    post_id = _create(client, auth_headers(author['user_id'])).get_json()['post_id']
    headers = auth_headers(reader['user_id'])

    liked = client.post(f"/api/posts/{post_id}/like", headers=headers)
    assert liked.get_json() == {"is_liked": True, "like_count": 1}

    post = client.get(f"/api/posts/{post_id}", headers=headers).get_json()
    assert post['is_liked'] is True
    assert post['like_count'] == 1
    feed = client.get('/api/posts/', headers=headers).get_json()
    assert feed['posts'][0]['is_liked'] is True

    unliked = client.post(f"/api/posts/{post_id}/like", headers=headers)
    assert unliked.get_json() == {"is_liked": False, "like_count": 0}

    notifications = [d.to_dict() for d in db.collection('notifications').stream()]
    assert [(n['type'], n['post_id']) for n in notifications] == [('LIKE', post_id)]


def test_like_missing_post_is_404(client, reader, auth_headers):
    assert client.post('/api/posts/missing/like', headers=auth_headers(reader['user_id'])).status_code == 404


def test_update_post_only_by_author(client, author, reader, auth_headers):
    post_id = _create(client, auth_headers(author['user_id'])).get_json()['post_id']

    forbidden = client.patch(f"/api/posts/{post_id}", json={"description": "hacked"},
                             headers=auth_headers(reader['user_id']))
    assert forbidden.status_code == 403

    response = client.patch(f"/api/posts/{post_id}", json={"description": "edited"},
                            headers=auth_headers(author['user_id']))
    assert response.status_code == 200
    assert response.get_json()['description'] == 'edited'


def test_delete_post_removes_comments_likes_and_images(client, db, bucket, author, reader, auth_headers):
    path = f"posts/{author['user_id']}/a.png"
    bucket.blobs[path] = (b'img', 'image/png')
    post_id = _create(client, auth_headers(author['user_id']), file_paths=[path]).get_json()['post_id']
    client.post(f"/api/posts/{post_id}/comments", json={"text": "nice"}, headers=auth_headers(reader['user_id']))
    client.post(f"/api/posts/{post_id}/like", headers=auth_headers(reader['user_id']))

    assert client.delete(f"/api/posts/{post_id}", headers=auth_headers(reader['user_id'])).status_code == 403

    response = client.delete(f"/api/posts/{post_id}", headers=auth_headers(author['user_id']))
    assert response.status_code == 204
    assert client.get(f"/api/posts/{post_id}").status_code == 404
    assert list(db.collection('comments').stream()) == []
    assert list(db.collection('likes').stream()) == []
    assert bucket.blobs == {}


def test_delete_post_with_more_likes_than_one_batch_holds(client, db, author, auth_headers):
    headers = auth_headers(author['user_id'])
    post_id = _create(client, headers).get_json()['post_id']
    likes = db.collection('likes')
    for i in range(520):
        likes.document(f"post_fan{i}_{post_id}").set({"user_id": f"fan{i}", "post_id": post_id})
    for i in range(30):
        db.collection('comments').document(f"c{i}").set({"comment_id": f"c{i}", "post_id": post_id})

    response = client.delete(f"/api/posts/{post_id}", headers=headers)

    assert response.status_code == 204
    assert list(likes.stream()) == []
    assert list(db.collection('comments').stream()) == []
    assert client.get(f"/api/posts/{post_id}").status_code == 404


def test_profile_post_count(client, author, auth_headers):
    _create(client, auth_headers(author['user_id']))
    _create(client, auth_headers(author['user_id']))

    assert client.get(f"/api/users/{author['user_id']}").get_json()['post_count'] == 2


# --- comments ---

def test_comment_create_list_and_count(client, db, author, reader, auth_headers):
    post_id = _create(client, auth_headers(author['user_id'])).get_json()['post_id']

    response = client.post(f"/api/posts/{post_id}/comments", json={"text": "first!"},
                           headers=auth_headers(reader['user_id']))
    assert response.status_code == 201
    assert response.get_json()['author']['username'] == 'bob'

    listed = client.get(f"/api/posts/{post_id}/comments").get_json()
    assert [c['text'] for c in listed['comments']] == ['first!']
    assert client.get(f"/api/posts/{post_id}").get_json()['comment_count'] == 1

    notification = next(db.collection('notifications').stream()).to_dict()
    assert notification['type'] == 'COMMENT'
    assert notification['target_summary'] == 'first!'
    assert notification['recipient_id'] == author['user_id']


def test_comment_on_missing_post(client, reader, auth_headers):
    response = client.post('/api/posts/missing/comments', json={"text": "hi"},
                           headers=auth_headers(reader['user_id']))

    assert response.status_code == 404
    assert client.get('/api/posts/missing/comments').status_code == 404


def test_comment_validation(client, author, auth_headers):
    post_id = _create(client, auth_headers(author['user_id'])).get_json()['post_id']

    response = client.post(f"/api/posts/{post_id}/comments", json={"text": ""},
                           headers=auth_headers(author['user_id']))

    assert response.status_code == 400


def test_delete_comment_permissions(client, make_user, author, reader, auth_headers):
    stranger = make_user('carol')
    post_id = _create(client, auth_headers(author['user_id'])).get_json()['post_id']
    first = client.post(f"/api/posts/{post_id}/comments", json={"text": "one"},
                        headers=auth_headers(reader['user_id'])).get_json()['comment_id']
    second = client.post(f"/api/posts/{post_id}/comments", json={"text": "two"},
                         headers=auth_headers(reader['user_id'])).get_json()['comment_id']

    assert client.delete(f"/api/posts/comments/{first}", headers=auth_headers(stranger['user_id'])).status_code == 403
    assert client.delete(f"/api/posts/comments/{first}", headers=auth_headers(reader['user_id'])).status_code == 204
    assert client.delete(f"/api/posts/comments/{second}", headers=auth_headers(author['user_id'])).status_code == 204
    assert client.delete(f"/api/posts/comments/{second}", headers=auth_headers(author['user_id'])).status_code == 404

    assert client.get(f"/api/posts/{post_id}").get_json()['comment_count'] == 0
