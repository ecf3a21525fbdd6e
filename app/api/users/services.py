# app/api/users/services.py
import logging
from typing import Optional, Dict, Any, List
from firebase_admin import firestore

from app.models.user import public_user_info
from app.utils.datetime_utils import DateTimeUtils

SEARCH_LIMIT = 20
# Highest code point Firestore sorts on; closes a prefix range query.
PREFIX_UPPER_BOUND = '\uf8ff'

class UserService:
    """
    Business logic for user profiles.
    - Reads the 'users' collection directly.
    - Shared services (storage, posts, relationships) arrive through the constructor.
    """
    def __init__(self, db=None, storage_service=None, post_service=None, relationship_service=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.storage_service = storage_service
        self.post_service = post_service
        self.relationship_service = relationship_service

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.users_ref.document(user_id).get()
        return doc.to_dict() if doc.exists else None

    def get_user_profile(self, user_id: str, viewer_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Public profile with the post count, plus relationship flags
        when the viewer is signed in.

        :param user_id: profile owner
        :param viewer_id: authenticated caller, if any
        :return: profile dict or None
        """
        try:
            user_data = self.get_user_by_id(user_id)
            if not user_data:
                return None

            user_data['post_count'] = self.post_service.count_posts_by_user_id(user_id) if self.post_service else 0
            if self.relationship_service:
                user_data['relationship'] = self.relationship_service.relationship_flags(viewer_id, user_id)
            return user_data
        except Exception as e:
            logging.error(f"Failed to load user profile (user_id: {user_id}): {e}", exc_info=True)
            raise

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial profile update.

        :raises LookupError: unknown user
        :raises ValueError: blank name
        """
        user_ref = self.users_ref.document(user_id)
        if not user_ref.get().exists:
            raise LookupError("User not found.")

        update_data = {}
        if 'name' in changes:
            name = (changes['name'] or '').strip()
            if not name:
                raise ValueError("Name cannot be empty.")
            update_data['name'] = name
            update_data['name_lower'] = name.lower()
        if 'bio' in changes:
            update_data['bio'] = (changes['bio'] or '').strip()
        if 'profile_picture' in changes:
            update_data['profile_picture'] = changes['profile_picture']

        update_data['updated_at'] = DateTimeUtils.now()
        user_ref.update(update_data)
        logging.info(f"Profile updated (user_id: {user_id}): {sorted(update_data)}")
        return user_ref.get().to_dict()

    def upload_profile_picture(self, user_id: str, data: bytes, filename: str, content_type: str) -> Dict[str, Any]:
        """Upload a new profile picture and drop the previous one."""
        user_data = self.get_user_by_id(user_id)
        if not user_data:
            raise LookupError("User not found.")

        public_url = self.storage_service.upload_file(data, f"profile_pictures/{user_id}", filename, content_type)
        previous_url = user_data.get('profile_picture')
        updated = self.update_profile(user_id, {'profile_picture': public_url})
        if previous_url:
            self.storage_service.delete_by_url(previous_url)
        return updated

    def update_user_profile_image(self, user_id: str, file_path: str) -> Dict[str, Any]:
        """
        Point the profile picture at a blob uploaded through a pre-signed URL.

        :raises FileNotFoundError: the blob does not exist
        """
        if not self.get_user_by_id(user_id):
            raise LookupError("User not found.")
        public_url = self.storage_service.make_public_and_get_url(file_path, user_id, 'profile_picture')
        return self.update_profile(user_id, {'profile_picture': public_url})

    def search_users(self, query: str, current_user_id: Optional[str]) -> List[Dict[str, Any]]:
        """
        Case-insensitive prefix search on username and name.
        The caller is left out; at most SEARCH_LIMIT results.
        """
        needle = query.strip().lower()
        if not needle:
            raise ValueError("A search query is required.")

        results: Dict[str, Dict[str, Any]] = {}
        for field in ('username_lower', 'name_lower'):
            docs = self.users_ref.where(field, '>=', needle) \
                .where(field, '<=', needle + PREFIX_UPPER_BOUND) \
                .limit(SEARCH_LIMIT + 1).stream()
            for doc in docs:
                user_data = doc.to_dict()
                uid = user_data.get('user_id')
                if uid != current_user_id and uid not in results:
                    results[uid] = public_user_info(user_data)

        ordered = sorted(results.values(), key=lambda u: (u['username'] or '').lower())
        return ordered[:SEARCH_LIMIT]

    def delete_user_account(self, user_id: str) -> None:
        """
        Delete the user document and every relationship edge touching it.
        Counters of the users on the other end are adjusted.
        """
        user_data = self.get_user_by_id(user_id)
        if not user_data:
            raise LookupError("User not found.")
        try:
            if self.relationship_service:
                self.relationship_service.remove_all_edges(user_id)
            if user_data.get('profile_picture') and self.storage_service:
                self.storage_service.delete_by_url(user_data['profile_picture'])
            self.users_ref.document(user_id).delete()
            logging.info(f"User account deleted (user_id: {user_id}).")
        except Exception as e:
            logging.error(f"Account deletion failed (user_id: {user_id}): {e}", exc_info=True)
            raise
