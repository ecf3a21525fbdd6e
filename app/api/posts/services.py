# app/api/posts/services.py
import logging
import uuid
from firebase_admin import firestore
from dataclasses import asdict
from typing import Optional, Dict, Any, Tuple, List

from app.models.post import Post, Author
from app.models.notification import NotificationType
from app.utils.datetime_utils import DateTimeUtils

# Firestore caps a write batch at 500 operations.
BATCH_LIMIT = 450

class PostService:
    """
    Business logic for posts.
    All Firestore access and the like toggle live here.
    """
    def __init__(self, db=None, storage_service=None, notification_service=None):
        self.db = db or firestore.client()
        self.posts_ref = self.db.collection('posts')
        self.users_ref = self.db.collection('users')
        self.comments_ref = self.db.collection('comments')
        self.likes_ref = self.db.collection('likes')  # likes live in their own collection
        self.storage_service = storage_service
        self.notification_service = notification_service

    def _author_of(self, user_id: str) -> Author:
        user_doc = self.users_ref.document(user_id).get()
        if not user_doc.exists:
            raise LookupError("User not found.")
        user_data = user_doc.to_dict()
        return Author(
            user_id=user_id,
            username=user_data.get("username"),
            name=user_data.get("name"),
            profile_picture=user_data.get("profile_picture")
        )

    def create_post(self, user_id: str, description: str, mood: Optional[str] = None,
                    images: Optional[List[Tuple[bytes, str, str]]] = None,
                    file_paths: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Create a post.

        :param images: (data, filename, content_type) tuples uploaded from a multipart form
        :param file_paths: blobs already uploaded through pre-signed URLs
        """
        author = self._author_of(user_id)

        image_urls = []
        for data, filename, content_type in images or []:
            image_urls.append(self.storage_service.upload_file(data, f"posts/{user_id}", filename, content_type))
        for file_path in file_paths or []:
            image_urls.append(self.storage_service.make_public_and_get_url(file_path, user_id, 'post_image'))

        post_id = str(uuid.uuid4())
        new_post = Post(
            post_id=post_id,
            author=author,
            description=description,
            mood=mood,
            image_urls=image_urls
        )
        post_data = asdict(new_post)
        self.posts_ref.document(post_id).set(post_data)
        logging.info(f"Post created: {post_id} by {user_id}")
        return post_data

    def get_posts(self, current_user_id: Optional[str], limit: int, cursor: Optional[str]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query = self.posts_ref.order_by("created_at", direction=firestore.Query.DESCENDING)
        return self._paginate(query, current_user_id, limit, cursor)

    def get_posts_by_user_id(self, author_id: str, current_user_id: Optional[str], limit: int, cursor: Optional[str]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Paginated posts written by one user."""
        query = self.posts_ref.where('author.user_id', '==', author_id) \
            .order_by("created_at", direction=firestore.Query.DESCENDING)
        return self._paginate(query, current_user_id, limit, cursor)

    def _paginate(self, query, current_user_id, limit, cursor):
        if cursor:
            cursor_doc = self.posts_ref.document(cursor).get()
            if cursor_doc.exists:
                query = query.start_after(cursor_doc)

        posts = [doc.to_dict() for doc in query.limit(limit).stream()]
        last_doc_id = posts[-1]['post_id'] if posts and len(posts) == limit else None

        liked_post_ids = self._check_likes_for_posts(current_user_id, [p['post_id'] for p in posts])
        for post in posts:
            post['is_liked'] = post['post_id'] in liked_post_ids
        return posts, last_doc_id

    def get_post_by_id(self, post_id: str, current_user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        doc = self.posts_ref.document(post_id).get()
        if not doc.exists:
            return None
        post_data = doc.to_dict()
        post_data['is_liked'] = self._is_user_liked_post(current_user_id, post_id)
        return post_data

    def update_post(self, post_id: str, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        post_ref = self.posts_ref.document(post_id)
        doc = post_ref.get()
        if not doc.exists:
            raise LookupError("Post not found.")
        if doc.to_dict().get('author', {}).get('user_id') != user_id:
            raise PermissionError("Only the author can edit this post.")

        update_data = {k: v for k, v in changes.items() if k in ('description', 'mood')}
        update_data['updated_at'] = DateTimeUtils.now()
        post_ref.update(update_data)
        return post_ref.get().to_dict()

    def delete_post(self, post_id: str, user_id: str) -> None:
        post_ref = self.posts_ref.document(post_id)
        doc = post_ref.get()
        if not doc.exists:
            raise LookupError("Post not found.")
        post_data = doc.to_dict()
        if post_data.get('author', {}).get('user_id') != user_id:
            raise PermissionError("Only the author can delete this post.")

        if self.storage_service:
            for url in post_data.get('image_urls', []):
                self.storage_service.delete_by_url(url)

        # The post goes in the last batch, so a failed run can be retried.
        children = list(self.comments_ref.where('post_id', '==', post_id).stream()) \
            + list(self.likes_ref.where('post_id', '==', post_id).stream())
        batch = self.db.batch()
        for removed, child_doc in enumerate(children, start=1):
            batch.delete(child_doc.reference)
            if removed % BATCH_LIMIT == 0:
                batch.commit()
                batch = self.db.batch()
        batch.delete(post_ref)
        batch.commit()
        logging.info(f"Post deleted: {post_id} ({len(children)} comments and likes removed)")

    def toggle_post_like(self, user_id: str, post_id: str) -> Tuple[bool, int]:
        """
        Like or unlike a post and notify the author of a new like.
        - Creates/deletes the 'likes' document "post_{user_id}_{post_id}".
        - Moves 'like_count' atomically in the same transaction.

        :return: (is_liked, like_count)
        """
        transaction = self.db.transaction()

        @firestore.transactional
        def _toggle_like_in_transaction(transaction, user_id, post_id):
            like_ref = self.likes_ref.document(f"post_{user_id}_{post_id}")
            post_ref = self.posts_ref.document(post_id)

            like_doc = like_ref.get(transaction=transaction)
            post_doc = post_ref.get(transaction=transaction)

            if not post_doc.exists:
                raise LookupError("Post not found.")

            post_data = post_doc.to_dict()
            like_count = post_data.get('like_count', 0)
            if like_doc.exists:
                transaction.delete(like_ref)
                transaction.update(post_ref, {'like_count': firestore.Increment(-1)})
                return False, max(like_count - 1, 0), post_data
            transaction.set(like_ref, {'user_id': user_id, 'post_id': post_id, 'created_at': DateTimeUtils.now()})
            transaction.update(post_ref, {'like_count': firestore.Increment(1)})
            return True, like_count + 1, post_data

        is_liked, like_count, post_data = _toggle_like_in_transaction(transaction, user_id, post_id)

        if is_liked and self.notification_service:
            self.notification_service.create_notification(
                recipient_id=post_data.get('author', {}).get('user_id'),
                sender_id=user_id,
                n_type=NotificationType.LIKE,
                post_id=post_id
            )
        return is_liked, like_count

    def count_posts_by_user_id(self, author_id: str) -> int:
        """Number of posts written by a user."""
        try:
            # Aggregation query: counts server-side without fetching documents.
            count_result = self.posts_ref.where('author.user_id', '==', author_id).count().get()
            return count_result[0][0].value
        except Exception as e:
            logging.error(f"Failed to count posts (author_id: {author_id}): {e}", exc_info=True)
            return 0

    def _is_user_liked_post(self, user_id: Optional[str], post_id: str) -> bool:
        if not user_id:
            return False
        return self.likes_ref.document(f"post_{user_id}_{post_id}").get().exists

    def _check_likes_for_posts(self, user_id: Optional[str], post_ids: List[str]) -> set:
        """Which of post_ids the user has liked, in one batched read."""
        if not user_id or not post_ids:
            return set()
        like_refs = [self.likes_ref.document(f"post_{user_id}_{pid}") for pid in post_ids]
        return {doc.to_dict()['post_id'] for doc in self.db.get_all(like_refs) if doc.exists}
