# app/api/relationships/services.py
import logging
from dataclasses import asdict
from firebase_admin import firestore
from typing import Optional, Dict, Any, List, Iterable

from app.models.notification import NotificationType
from app.models.relationship import Predicate, Relationship, relationship_id
from app.models.user import public_user_info

# Firestore caps a write batch at 500 operations.
BATCH_LIMIT = 450


class RelationshipService:
    """
    Follow, friend-request and block edges between users.

    Each edge is one document in 'relationships' with the id
    "{subject}_{predicate}_{object}". Every change that also moves the
    follower/following counters runs inside a Firestore transaction.
    """
    def __init__(self, db=None, notification_service=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.relationships_ref = self.db.collection('relationships')
        self.notification_service = notification_service

    # --- edge helpers ---
    def _edge_ref(self, subject_id: str, predicate: Predicate, object_id: str):
        return self.relationships_ref.document(relationship_id(subject_id, predicate, object_id))

    def has_edge(self, subject_id: str, predicate: Predicate, object_id: str) -> bool:
        return self._edge_ref(subject_id, predicate, object_id).get().exists

    def is_blocked_between(self, user_a: str, user_b: str) -> bool:
        """True when either user blocks the other."""
        return self.has_edge(user_a, Predicate.BLOCKS, user_b) or self.has_edge(user_b, Predicate.BLOCKS, user_a)

    def _edge_data(self, subject_id: str, predicate: Predicate, object_id: str) -> Dict[str, Any]:
        return asdict(Relationship(subject_id=subject_id, predicate=predicate.value, object_id=object_id))

    def _set_follow(self, transaction, follower_id: str, followee_id: str):
        transaction.set(self._edge_ref(follower_id, Predicate.FOLLOWS, followee_id),
                        self._edge_data(follower_id, Predicate.FOLLOWS, followee_id))
        transaction.update(self.users_ref.document(follower_id), {'following_count': firestore.Increment(1)})
        transaction.update(self.users_ref.document(followee_id), {'follower_count': firestore.Increment(1)})

    def _delete_follow(self, transaction, follower_id: str, followee_id: str):
        transaction.delete(self._edge_ref(follower_id, Predicate.FOLLOWS, followee_id))
        transaction.update(self.users_ref.document(follower_id), {'following_count': firestore.Increment(-1)})
        transaction.update(self.users_ref.document(followee_id), {'follower_count': firestore.Increment(-1)})

    def _validate_target(self, user_id: str, target_id: str, check_block: bool = True) -> Dict[str, Any]:
        """
        :raises ValueError: targeting yourself
        :raises LookupError: the caller or the target does not exist
        :raises PermissionError: a block stands between the two users
        """
        if user_id == target_id:
            raise ValueError("You cannot do this to yourself.")
        self._require_user(user_id)
        target_doc = self.users_ref.document(target_id).get()
        if not target_doc.exists:
            raise LookupError("User not found.")
        if check_block and self.is_blocked_between(user_id, target_id):
            raise PermissionError("This action is not allowed between these users.")
        return target_doc.to_dict()

    def _notify(self, recipient_id: str, sender_id: str, n_type: NotificationType):
        if self.notification_service:
            self.notification_service.create_notification(recipient_id=recipient_id, sender_id=sender_id, n_type=n_type)

    # --- follow ---
    def follow(self, user_id: str, target_id: str) -> None:
        self._validate_target(user_id, target_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _follow_in_transaction(transaction, user_id, target_id):
            follow_ref = self._edge_ref(user_id, Predicate.FOLLOWS, target_id)
            request_ref = self._edge_ref(user_id, Predicate.FRIEND_REQUEST, target_id)
            follow_doc = follow_ref.get(transaction=transaction)
            request_doc = request_ref.get(transaction=transaction)

            if follow_doc.exists:
                raise ValueError("Already following this user.")
            if request_doc.exists:
                transaction.delete(request_ref)
            self._set_follow(transaction, user_id, target_id)

        _follow_in_transaction(transaction, user_id, target_id)
        logging.info(f"User {user_id} now follows {target_id}")
        self._notify(target_id, user_id, NotificationType.FOLLOW)

    def unfollow(self, user_id: str, target_id: str) -> None:
        self._validate_target(user_id, target_id, check_block=False)
        transaction = self.db.transaction()

        @firestore.transactional
        def _unfollow_in_transaction(transaction, user_id, target_id):
            follow_doc = self._edge_ref(user_id, Predicate.FOLLOWS, target_id).get(transaction=transaction)
            if not follow_doc.exists:
                raise ValueError("You are not following this user.")
            self._delete_follow(transaction, user_id, target_id)

        _unfollow_in_transaction(transaction, user_id, target_id)
        logging.info(f"User {user_id} unfollowed {target_id}")

    # --- friend requests ---
    def send_friend_request(self, user_id: str, target_id: str) -> None:
        self._validate_target(user_id, target_id)
        if self.has_edge(user_id, Predicate.FOLLOWS, target_id):
            raise ValueError("Already following this user.")
        if self.has_edge(user_id, Predicate.FRIEND_REQUEST, target_id):
            raise ValueError("Friend request already sent.")

        self._edge_ref(user_id, Predicate.FRIEND_REQUEST, target_id).set(
            self._edge_data(user_id, Predicate.FRIEND_REQUEST, target_id))
        logging.info(f"Friend request sent: {user_id} -> {target_id}")
        self._notify(target_id, user_id, NotificationType.FRIEND_REQUEST)

    def cancel_friend_request(self, user_id: str, target_id: str) -> None:
        self._validate_target(user_id, target_id, check_block=False)
        request_ref = self._edge_ref(user_id, Predicate.FRIEND_REQUEST, target_id)
        if not request_ref.get().exists:
            raise ValueError("No pending friend request to this user.")
        request_ref.delete()
        logging.info(f"Friend request cancelled: {user_id} -> {target_id}")

    def accept_friend_request(self, user_id: str, requester_id: str) -> None:
        """Accepting makes the requester a follower of the accepting user."""
        self._validate_target(user_id, requester_id)
        transaction = self.db.transaction()

        @firestore.transactional
        def _accept_in_transaction(transaction, user_id, requester_id):
            request_ref = self._edge_ref(requester_id, Predicate.FRIEND_REQUEST, user_id)
            request_doc = request_ref.get(transaction=transaction)
            follow_doc = self._edge_ref(requester_id, Predicate.FOLLOWS, user_id).get(transaction=transaction)

            if not request_doc.exists:
                raise ValueError("No friend request from this user.")
            transaction.delete(request_ref)
            if not follow_doc.exists:
                self._set_follow(transaction, requester_id, user_id)

        _accept_in_transaction(transaction, user_id, requester_id)
        logging.info(f"Friend request accepted: {requester_id} -> {user_id}")
        self._notify(requester_id, user_id, NotificationType.FOLLOW)

    def reject_friend_request(self, user_id: str, requester_id: str) -> None:
        self._validate_target(user_id, requester_id, check_block=False)
        request_ref = self._edge_ref(requester_id, Predicate.FRIEND_REQUEST, user_id)
        if not request_ref.get().exists:
            raise ValueError("No friend request from this user.")
        request_ref.delete()
        logging.info(f"Friend request rejected: {requester_id} -> {user_id}")

    # --- blocks ---
    def block(self, user_id: str, target_id: str) -> None:
        """Block a user, removing follows and friend requests in both directions."""
        self._validate_target(user_id, target_id, check_block=False)
        transaction = self.db.transaction()

        @firestore.transactional
        def _block_in_transaction(transaction, user_id, target_id):
            block_ref = self._edge_ref(user_id, Predicate.BLOCKS, target_id)
            block_doc = block_ref.get(transaction=transaction)
            follows = {
                (a, b): self._edge_ref(a, Predicate.FOLLOWS, b).get(transaction=transaction).exists
                for a, b in ((user_id, target_id), (target_id, user_id))
            }
            requests = {
                (a, b): self._edge_ref(a, Predicate.FRIEND_REQUEST, b).get(transaction=transaction).exists
                for a, b in ((user_id, target_id), (target_id, user_id))
            }

            if block_doc.exists:
                raise ValueError("User is already blocked.")

            for (a, b), exists in follows.items():
                if exists:
                    self._delete_follow(transaction, a, b)
            for (a, b), exists in requests.items():
                if exists:
                    transaction.delete(self._edge_ref(a, Predicate.FRIEND_REQUEST, b))
            transaction.set(block_ref, self._edge_data(user_id, Predicate.BLOCKS, target_id))

        _block_in_transaction(transaction, user_id, target_id)
        logging.info(f"User {user_id} blocked {target_id}")

    def unblock(self, user_id: str, target_id: str) -> None:
        self._validate_target(user_id, target_id, check_block=False)
        block_ref = self._edge_ref(user_id, Predicate.BLOCKS, target_id)
        if not block_ref.get().exists:
            raise ValueError("User is not blocked.")
        block_ref.delete()
        logging.info(f"User {user_id} unblocked {target_id}")

    # --- listings ---
    def _subjects(self, predicate: Predicate, object_id: str) -> List[str]:
        docs = self.relationships_ref.where('predicate', '==', predicate.value) \
            .where('object_id', '==', object_id).stream()
        return [doc.to_dict()['subject_id'] for doc in docs]

    def _objects(self, subject_id: str, predicate: Predicate) -> List[str]:
        docs = self.relationships_ref.where('subject_id', '==', subject_id) \
            .where('predicate', '==', predicate.value).stream()
        return [doc.to_dict()['object_id'] for doc in docs]

    def _user_summaries(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Public info for the given ids, in order, skipping deleted users."""
        user_ids = list(user_ids)
        if not user_ids:
            return []
        docs = self.db.get_all([self.users_ref.document(uid) for uid in user_ids])
        found = {doc.id: doc.to_dict() for doc in docs if doc.exists}
        return [public_user_info(found[uid]) for uid in user_ids if uid in found]

    def _require_user(self, user_id: str):
        if not self.users_ref.document(user_id).get().exists:
            raise LookupError("User not found.")

    def get_followers(self, user_id: str) -> List[Dict[str, Any]]:
        self._require_user(user_id)
        return self._user_summaries(self._subjects(Predicate.FOLLOWS, user_id))

    def get_following(self, user_id: str) -> List[Dict[str, Any]]:
        self._require_user(user_id)
        return self._user_summaries(self._objects(user_id, Predicate.FOLLOWS))

    def following_ids(self, user_id: str) -> List[str]:
        return self._objects(user_id, Predicate.FOLLOWS)

    def get_friends(self, user_id: str) -> List[Dict[str, Any]]:
        """Friends are mutual follows."""
        self._require_user(user_id)
        followers = set(self._subjects(Predicate.FOLLOWS, user_id))
        return self._user_summaries(uid for uid in self._objects(user_id, Predicate.FOLLOWS) if uid in followers)

    def get_incoming_requests(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_summaries(self._subjects(Predicate.FRIEND_REQUEST, user_id))

    def get_sent_requests(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_summaries(self._objects(user_id, Predicate.FRIEND_REQUEST))

    def get_blocked(self, user_id: str) -> List[Dict[str, Any]]:
        return self._user_summaries(self._objects(user_id, Predicate.BLOCKS))

    def relationship_flags(self, viewer_id: Optional[str], target_id: str) -> Optional[Dict[str, bool]]:
        """How the viewer relates to the target; None for anonymous or self views."""
        if not viewer_id or viewer_id == target_id:
            return None
        refs = {
            'is_following': self._edge_ref(viewer_id, Predicate.FOLLOWS, target_id),
            'is_followed_by': self._edge_ref(target_id, Predicate.FOLLOWS, viewer_id),
            'friend_request_sent': self._edge_ref(viewer_id, Predicate.FRIEND_REQUEST, target_id),
            'friend_request_received': self._edge_ref(target_id, Predicate.FRIEND_REQUEST, viewer_id),
            'is_blocked': self._edge_ref(viewer_id, Predicate.BLOCKS, target_id),
        }
        flags = {name: ref.get().exists for name, ref in refs.items()}
        flags['is_friend'] = flags['is_following'] and flags['is_followed_by']
        return flags

    # --- account deletion ---
    def remove_all_edges(self, user_id: str) -> int:
        """
        Delete every edge touching the user and fix the counters of the
        users on the other end. Returns the number of deleted edges.
        """
        outgoing = list(self.relationships_ref.where('subject_id', '==', user_id).stream())
        incoming = list(self.relationships_ref.where('object_id', '==', user_id).stream())

        batch = self.db.batch()
        operations = 0
        for doc in outgoing + incoming:
            edge = doc.to_dict()
            batch.delete(doc.reference)
            operations += 1
            if edge.get('predicate') == Predicate.FOLLOWS.value:
                if edge['subject_id'] == user_id:
                    batch.update(self.users_ref.document(edge['object_id']),
                                 {'follower_count': firestore.Increment(-1)})
                else:
                    batch.update(self.users_ref.document(edge['subject_id']),
                                 {'following_count': firestore.Increment(-1)})
                operations += 1
            if operations >= BATCH_LIMIT:
                batch.commit()
                batch = self.db.batch()
                operations = 0
        batch.commit()

        removed = len(outgoing) + len(incoming)
        logging.info(f"Removed {removed} relationship edges of user {user_id}")
        return removed
