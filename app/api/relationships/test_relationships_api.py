# app/api/relationships/test_relationships_api.py
"""
Follow, friend-request and block endpoints.

Run: python -m pytest app/api/relationships/test_relationships_api.py -v
"""
import pytest

from app.models.relationship import Predicate, relationship_id


@pytest.fixture
def pair(make_user):
    return make_user('alice'), make_user('bob')


def _counts(db, user_id):
    data = db.collection('users').document(user_id).get().to_dict()
    return data['follower_count'], data['following_count']


def _notification_types(db, recipient_id):
    docs = db.collection('notifications').where('recipient_id', '==', recipient_id).stream()
    return sorted(doc.to_dict()['type'] for doc in docs)


def test_follow_and_unfollow_update_counters(client, db, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])

    response = client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)
    assert response.status_code == 200
    assert response.get_json()['relationship']['is_following'] is True
    assert _counts(db, alice['user_id']) == (0, 1)
    assert _counts(db, bob['user_id']) == (1, 0)
    assert _notification_types(db, bob['user_id']) == ['FOLLOW']

    response = client.delete(f"/api/users/{bob['user_id']}/follow", headers=headers)
    assert response.status_code == 200
    assert response.get_json()['relationship']['is_following'] is False
    assert _counts(db, alice['user_id']) == (0, 0)
    assert _counts(db, bob['user_id']) == (0, 0)


def test_follow_twice_is_rejected(client, db, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])
    client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)

    response = client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)

    assert response.status_code == 400
    assert _counts(db, bob['user_id']) == (1, 0)


def test_unfollow_without_follow_is_rejected(client, pair, auth_headers):
    alice, bob = pair

    response = client.delete(f"/api/users/{bob['user_id']}/follow", headers=auth_headers(alice['user_id']))

    assert response.status_code == 400


def test_cannot_target_yourself_or_unknown_users(client, make_user, auth_headers):
    alice = make_user('alice')
    headers = auth_headers(alice['user_id'])

    assert client.post(f"/api/users/{alice['user_id']}/follow", headers=headers).status_code == 400
    missing = client.post('/api/users/nobody/follow', headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()['error_code'] == 'USER_NOT_FOUND'


def test_deleted_account_token_cannot_follow(client, db, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])
    assert client.delete('/api/users/me', headers=headers).status_code == 204

    response = client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)

    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'USER_NOT_FOUND'
    assert _counts(db, bob['user_id']) == (0, 0)
    edge_id = relationship_id(alice['user_id'], Predicate.FOLLOWS, bob['user_id'])
    assert not db.collection('relationships').document(edge_id).get().exists


def test_follow_requires_authentication(client, pair):
    _, bob = pair

    assert client.post(f"/api/users/{bob['user_id']}/follow").status_code == 401


def test_friend_request_accept_flow(client, db, pair, auth_headers):
    alice, bob = pair

    sent = client.post(f"/api/users/{bob['user_id']}/friend-request", headers=auth_headers(alice['user_id']))
    assert sent.status_code == 200
    assert sent.get_json()['relationship']['friend_request_sent'] is True
    assert _notification_types(db, bob['user_id']) == ['FRIEND_REQUEST']

    incoming = client.get('/api/users/friend-requests', headers=auth_headers(bob['user_id'])).get_json()
    assert incoming['count'] == 1
    assert incoming['requests'][0]['username'] == 'alice'
    outgoing = client.get('/api/users/sent-requests', headers=auth_headers(alice['user_id'])).get_json()
    assert [u['username'] for u in outgoing['requests']] == ['bob']

    accepted = client.post(f"/api/users/{alice['user_id']}/accept-request", headers=auth_headers(bob['user_id']))
    assert accepted.status_code == 200
    flags = accepted.get_json()['relationship']
    assert flags['is_followed_by'] is True
    assert flags['friend_request_received'] is False

    assert _counts(db, bob['user_id']) == (1, 0)
    assert _counts(db, alice['user_id']) == (0, 1)
    assert _notification_types(db, alice['user_id']) == ['FOLLOW']
    assert client.get('/api/users/friend-requests', headers=auth_headers(bob['user_id'])).get_json()['count'] == 0


def test_friend_request_duplicates_and_existing_follow(client, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])

    client.post(f"/api/users/{bob['user_id']}/friend-request", headers=headers)
    duplicate = client.post(f"/api/users/{bob['user_id']}/friend-request", headers=headers)
    assert duplicate.status_code == 400

    client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)
    after_follow = client.post(f"/api/users/{bob['user_id']}/friend-request", headers=headers)
    assert after_follow.status_code == 400


def test_follow_clears_pending_request(client, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])
    client.post(f"/api/users/{bob['user_id']}/friend-request", headers=headers)

    response = client.post(f"/api/users/{bob['user_id']}/follow", headers=headers)

    assert response.get_json()['relationship']['friend_request_sent'] is False


def test_cancel_and_reject_friend_request(client, db, pair, auth_headers):
    alice, bob = pair

    client.post(f"/api/users/{bob['user_id']}/friend-request", headers=auth_headers(alice['user_id']))
    cancelled = client.delete(f"/api/users/{bob['user_id']}/friend-request", headers=auth_headers(alice['user_id']))
    assert cancelled.status_code == 200
    assert client.delete(f"/api/users/{bob['user_id']}/friend-request",
                         headers=auth_headers(alice['user_id'])).status_code == 400

    client.post(f"/api/users/{bob['user_id']}/friend-request", headers=auth_headers(alice['user_id']))
    rejected = client.post(f"/api/users/{alice['user_id']}/reject-request", headers=auth_headers(bob['user_id']))
    assert rejected.status_code == 200
    assert _counts(db, bob['user_id']) == (0, 0)
    assert client.post(f"/api/users/{alice['user_id']}/accept-request",
                       headers=auth_headers(bob['user_id'])).status_code == 400


def test_block_removes_edges_and_forbids_interaction(client, db, pair, auth_headers):
    alice, bob = pair
    client.post(f"/api/users/{bob['user_id']}/follow", headers=auth_headers(alice['user_id']))
    client.post(f"/api/users/{alice['user_id']}/follow", headers=auth_headers(bob['user_id']))

    blocked = client.post(f"/api/users/{alice['user_id']}/block", headers=auth_headers(bob['user_id']))
    assert blocked.status_code == 200
    assert blocked.get_json()['relationship']['is_blocked'] is True
    assert _counts(db, alice['user_id']) == (0, 0)
    assert _counts(db, bob['user_id']) == (0, 0)

    follow_back = client.post(f"/api/users/{bob['user_id']}/follow", headers=auth_headers(alice['user_id']))
    assert follow_back.status_code == 403
    request = client.post(f"/api/users/{alice['user_id']}/friend-request", headers=auth_headers(bob['user_id']))
    assert request.status_code == 403

    listed = client.get('/api/users/blocked', headers=auth_headers(bob['user_id'])).get_json()
    assert [u['username'] for u in listed['blocked']] == ['alice']


def test_block_twice_and_unblock(client, pair, auth_headers):
    alice, bob = pair
    headers = auth_headers(alice['user_id'])

    client.post(f"/api/users/{bob['user_id']}/block", headers=headers)
    assert client.post(f"/api/users/{bob['user_id']}/block", headers=headers).status_code == 400

    unblocked = client.delete(f"/api/users/{bob['user_id']}/block", headers=headers)
    assert unblocked.status_code == 200
    assert unblocked.get_json()['relationship']['is_blocked'] is False
    assert client.delete(f"/api/users/{bob['user_id']}/block", headers=headers).status_code == 400
    assert client.post(f"/api/users/{bob['user_id']}/follow", headers=headers).status_code == 200


def test_followers_following_and_friends_lists(client, app, make_user):
    alice, bob, carol = make_user('alice'), make_user('bob'), make_user('carol')
    relationships = app.services['relationships']
    relationships.follow(alice['user_id'], bob['user_id'])
    relationships.follow(bob['user_id'], alice['user_id'])
    relationships.follow(carol['user_id'], alice['user_id'])

    followers = client.get(f"/api/users/{alice['user_id']}/followers").get_json()
    assert followers['count'] == 2
    assert sorted(u['username'] for u in followers['followers']) == ['bob', 'carol']

    following = client.get(f"/api/users/{alice['user_id']}/following").get_json()
    assert [u['username'] for u in following['following']] == ['bob']

    friends = client.get(f"/api/users/{alice['user_id']}/friends").get_json()
    assert [u['username'] for u in friends['friends']] == ['bob']

    assert client.get('/api/users/nobody/followers').status_code == 404
