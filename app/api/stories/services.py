# app/api/stories/services.py
import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from firebase_admin import firestore
from typing import Optional, Dict, Any, List, Tuple

from app.models.post import Author
from app.models.story import Story, MediaType
from app.models.user import public_user_info
from app.utils.datetime_utils import DateTimeUtils

# Firestore 'in' filters accept at most 30 values.
IN_QUERY_CHUNK = 30


class StoryService:
    """
    Ephemeral stories: created with an expiry, visible to followers
    until then, and purged afterwards.
    """
    def __init__(self, db=None, storage_service=None, relationship_service=None, ttl_hours: int = 24):
        self.db = db or firestore.client()
        self.stories_ref = self.db.collection('stories')
        self.users_ref = self.db.collection('users')
        self.storage_service = storage_service
        self.relationship_service = relationship_service
        self.ttl_hours = ttl_hours

    def create_story(self, user_id: str, media_url: Optional[str] = None, media_type: Optional[str] = None,
                     upload: Optional[Tuple[bytes, str, str]] = None) -> Dict[str, Any]:
        """
        Create a story from an uploaded file or an already hosted media URL.

        :param upload: (data, filename, content_type) of a multipart upload
        """
        user_doc = self.users_ref.document(user_id).get()
        if not user_doc.exists:
            raise LookupError("User not found.")
        user_data = user_doc.to_dict()

        if upload:
            data, filename, content_type = upload
            media_type = MediaType.VIDEO.value if content_type.startswith('video/') else MediaType.IMAGE.value
            media_url = self.storage_service.upload_file(data, f"stories/{user_id}", filename, content_type)
        if not media_url:
            raise ValueError("Story media is required.")
        media_type = MediaType(media_type or MediaType.IMAGE.value).value

        created_at = DateTimeUtils.now()
        story = Story(
            story_id=str(uuid.uuid4()),
            author=Author(
                user_id=user_id,
                username=user_data.get('username'),
                name=user_data.get('name'),
                profile_picture=user_data.get('profile_picture')
            ),
            media_url=media_url,
            media_type=media_type,
            expires_at=DateTimeUtils.expires_after(self.ttl_hours, created_at),
            created_at=created_at
        )
        story_data = asdict(story)
        self.stories_ref.document(story.story_id).set(story_data)
        logging.info(f"Story created: {story.story_id} by {user_id}")
        return story_data

    def _active_stories_for(self, author_ids: List[str], now: datetime) -> List[Dict[str, Any]]:
        stories = []
        for i in range(0, len(author_ids), IN_QUERY_CHUNK):
            chunk = author_ids[i:i + IN_QUERY_CHUNK]
            docs = self.stories_ref.where('author.user_id', 'in', chunk) \
                .where('expires_at', '>', now).stream()
            stories.extend(doc.to_dict() for doc in docs)
        return stories

    def get_feed(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Unexpired stories of followed users and the caller, grouped per author.
        Groups are ordered by their newest story; each group is chronological.
        """
        author_ids = [user_id]
        if self.relationship_service:
            author_ids += [uid for uid in self.relationship_service.following_ids(user_id) if uid != user_id]

        groups: Dict[str, Dict[str, Any]] = {}
        for story in self._active_stories_for(author_ids, DateTimeUtils.now()):
            author = story['author']
            group = groups.setdefault(author['user_id'], {"user": author, "stories": [], "has_unviewed": False})
            group['stories'].append(story)
            if author['user_id'] != user_id and user_id not in story.get('viewers', []):
                group['has_unviewed'] = True

        for group in groups.values():
            group['stories'].sort(key=lambda s: DateTimeUtils.ensure_utc(s['created_at']))
        return sorted(groups.values(),
                      key=lambda g: DateTimeUtils.ensure_utc(g['stories'][-1]['created_at']),
                      reverse=True)

    def get_user_stories(self, user_id: str) -> List[Dict[str, Any]]:
        stories = self._active_stories_for([user_id], DateTimeUtils.now())
        if not stories:
            raise LookupError("No active stories for this user.")
        return sorted(stories, key=lambda s: DateTimeUtils.ensure_utc(s['created_at']))

    def _get_story(self, story_id: str) -> Tuple[Any, Dict[str, Any]]:
        story_ref = self.stories_ref.document(story_id)
        doc = story_ref.get()
        if not doc.exists:
            raise LookupError("Story not found.")
        return story_ref, doc.to_dict()

    def view_story(self, story_id: str, viewer_id: str) -> Dict[str, Any]:
        """Record a view. The owner's own views are not recorded."""
        story_ref, story = self._get_story(story_id)
        if DateTimeUtils.is_expired(story.get('expires_at')):
            raise ValueError("Story has expired.")

        if story['author']['user_id'] != viewer_id and viewer_id not in story.get('viewers', []):
            story_ref.update({'viewers': firestore.ArrayUnion([viewer_id])})
        return story_ref.get().to_dict()

    def get_viewers(self, story_id: str, user_id: str) -> List[Dict[str, Any]]:
        _, story = self._get_story(story_id)
        if story['author']['user_id'] != user_id:
            raise PermissionError("Only the owner can see who viewed this story.")

        viewer_ids = story.get('viewers', [])
        if not viewer_ids:
            return []
        docs = self.db.get_all([self.users_ref.document(uid) for uid in viewer_ids])
        found = {doc.id: doc.to_dict() for doc in docs if doc.exists}
        return [public_user_info(found[uid]) for uid in viewer_ids if uid in found]

    def delete_story(self, story_id: str, user_id: str) -> None:
        story_ref, story = self._get_story(story_id)
        if story['author']['user_id'] != user_id:
            raise PermissionError("Only the owner can delete this story.")
        if self.storage_service:
            self.storage_service.delete_by_url(story.get('media_url'))
        story_ref.delete()
        logging.info(f"Story deleted: {story_id}")

    def purge_expired(self) -> int:
        """Delete every expired story document; returns how many were removed."""
        docs = self.stories_ref.where('expires_at', '<=', DateTimeUtils.now()).stream()
        batch = self.db.batch()
        removed = 0
        for doc in docs:
            batch.delete(doc.reference)
            removed += 1
            if removed % 450 == 0:
                batch.commit()
                batch = self.db.batch()
        batch.commit()
        logging.info(f"Purged {removed} expired stories")
        return removed
