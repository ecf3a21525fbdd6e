# app/api/comments/services.py

import logging
import uuid
from firebase_admin import firestore
from dataclasses import asdict
from typing import Optional, Dict, Any, List, Tuple

from app.models.comment import Comment
from app.models.notification import NotificationType
from app.models.user import public_user_info

SUMMARY_LENGTH = 50

class CommentService:
    """
    Business logic for comments on posts.
    Creation and deletion keep the post's comment_count in step.
    """
    def __init__(self, db=None, notification_service=None):
        self.db = db or firestore.client()
        self.comments_ref = self.db.collection('comments')
        self.posts_ref = self.db.collection('posts')
        self.users_ref = self.db.collection('users')
        self.notification_service = notification_service

    def create_comment(self, post_id: str, author_id: str, text: str) -> Dict[str, Any]:
        """Create a comment and notify the post author."""
        author_doc = self.users_ref.document(author_id).get()
        if not author_doc.exists:
            raise LookupError("Comment author not found.")
        author_data = public_user_info(author_doc.to_dict())

        transaction = self.db.transaction()

        @firestore.transactional
        def _create_in_transaction(transaction, post_id, author_data, text):
            post_ref = self.posts_ref.document(post_id)
            post_snapshot = post_ref.get(transaction=transaction)
            if not post_snapshot.exists:
                raise LookupError("The post to comment on does not exist.")

            comment_id = str(uuid.uuid4())
            new_comment = Comment(
                comment_id=comment_id,
                post_id=post_id,
                author=author_data,
                text=text
            )
            transaction.set(self.comments_ref.document(comment_id), asdict(new_comment))
            transaction.update(post_ref, {'comment_count': firestore.Increment(1)})
            return new_comment, post_snapshot.to_dict()

        new_comment, post_data = _create_in_transaction(transaction, post_id, author_data, text)

        post_author_id = post_data.get('author', {}).get('user_id')
        if self.notification_service:
            self.notification_service.create_notification(
                recipient_id=post_author_id, sender_id=author_id,
                n_type=NotificationType.COMMENT, post_id=post_id,
                comment_id=new_comment.comment_id, target_summary=text[:SUMMARY_LENGTH]
            )
        return asdict(new_comment)

    def get_comments_for_post(self, post_id: str, limit: int, cursor: Optional[str]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Comments of a post, oldest first, cursor paginated."""
        if not self.posts_ref.document(post_id).get().exists:
            raise LookupError("Post not found.")

        query = self.comments_ref.where('post_id', '==', post_id).order_by("created_at")
        if cursor:
            cursor_doc = self.comments_ref.document(cursor).get()
            if cursor_doc.exists:
                query = query.start_after(cursor_doc)

        comments = [doc.to_dict() for doc in query.limit(limit).stream()]
        last_doc_id = comments[-1]['comment_id'] if comments and len(comments) == limit else None
        return comments, last_doc_id

    def delete_comment(self, comment_id: str, user_id: str) -> None:
        """Delete a comment. Allowed for the comment author and the post author."""
        transaction = self.db.transaction()

        @firestore.transactional
        def _delete_in_transaction(transaction, comment_id, user_id):
            comment_ref = self.comments_ref.document(comment_id)
            comment_doc = comment_ref.get(transaction=transaction)
            if not comment_doc.exists:
                raise LookupError("Comment not found.")

            comment_data = comment_doc.to_dict()
            post_ref = self.posts_ref.document(comment_data.get('post_id'))
            post_doc = post_ref.get(transaction=transaction)
            post_author_id = post_doc.to_dict().get('author', {}).get('user_id') if post_doc.exists else None

            if user_id not in (comment_data.get('author', {}).get('user_id'), post_author_id):
                raise PermissionError("You cannot delete this comment.")

            transaction.delete(comment_ref)
            if post_doc.exists:
                transaction.update(post_ref, {'comment_count': firestore.Increment(-1)})

        try:
            _delete_in_transaction(transaction, comment_id, user_id)
            logging.info(f"Comment deleted: {comment_id}")
        except (LookupError, PermissionError):
            raise
        except Exception as e:
            logging.error(f"Failed to delete comment (comment_id: {comment_id}): {e}", exc_info=True)
            raise
