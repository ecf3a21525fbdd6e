# app/services/storage_service.py
import uuid
import logging
from datetime import timedelta
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

from flask import Flask
from firebase_admin import storage
from google.api_core import exceptions as google_exceptions
from tenacity import (
    Retrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_not_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

IMAGE_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp')
VIDEO_CONTENT_TYPES = ('video/mp4', 'video/quicktime')

# Upload type -> top-level bucket folder. Blobs live under "{folder}/{user_id}/".
UPLOAD_FOLDERS = {
    "profile_picture": "profile_pictures",
    "post_image": "posts",
    "story_media": "stories",
    "message_media": "messages",
}

# Client-side failures: retrying the same request cannot succeed.
NON_RETRYABLE_ERRORS = (
    google_exceptions.BadRequest,
    google_exceptions.Unauthorized,
    google_exceptions.Forbidden,
    ValueError,
)


def validate_media(file_storage, allowed_types: Iterable[str], max_bytes: int) -> bytes:
    """
    Check an uploaded werkzeug FileStorage and return its bytes.

    :raises ValueError: empty file, disallowed MIME type or too large
    """
    if file_storage is None or not file_storage.filename:
        raise ValueError("No file was uploaded.")

    content_type = (file_storage.mimetype or '').lower()
    if content_type not in allowed_types:
        raise ValueError(f"Unsupported file type: {content_type or 'unknown'}")

    data = file_storage.read()
    if not data:
        raise ValueError("The uploaded file is empty.")
    if len(data) > max_bytes:
        raise ValueError(f"File exceeds the size limit of {max_bytes} bytes.")
    return data


class StorageService:
    """
    Shared service for the Firebase Storage bucket.
    Issues pre-signed upload URLs, uploads media from the server side,
    publishes and deletes blobs.
    """

    def __init__(self, max_attempts: int = 3, retry_wait: float = 1.0):
        """
        The bucket is attached later by init_app.
        """
        self.bucket = None
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait

    def init_app(self, app: Flask):
        """
        Bind the bucket from app config. Called once from create_app.

        :param app: Flask application
        """
        bucket_name = app.config.get('FIREBASE_STORAGE_BUCKET')
        if not bucket_name:
            raise ValueError("FIREBASE_STORAGE_BUCKET must be set in the environment or config.")

        self.bucket = storage.bucket(bucket_name)
        self.max_attempts = app.config.get('UPLOAD_MAX_ATTEMPTS', self.max_attempts)
        self.retry_wait = app.config.get('UPLOAD_RETRY_WAIT', self.retry_wait)
        logger.info("StorageService: Firebase Storage bucket initialised.")

    def _require_bucket(self):
        if not self.bucket:
            raise RuntimeError("StorageService is not initialised. Call init_app first.")

    @staticmethod
    def _unique_name(folder: str, filename: str) -> str:
        extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
        unique_filename = f"{uuid.uuid4()}.{extension}" if extension else str(uuid.uuid4())
        return f"{folder}/{unique_filename}"

    def generate_upload_url(self, user_id: str, upload_type: str, filename: str, content_type: str) -> dict:
        """
        Create a pre-signed PUT URL under the folder matching the upload type.
        The client uploads straight to the bucket, bypassing the API server.

        :param user_id: id of the authenticated user
        :param upload_type: one of "profile_picture", "post_image", "story_media", "message_media"
        :param filename: original file name (used for the extension)
        :param content_type: MIME type of the file
        :return: upload URL and the blob path to hand back later
        """
        self._require_bucket()

        folder = UPLOAD_FOLDERS.get(upload_type)
        if not folder:
            raise ValueError(f"'{upload_type}' is not a valid upload type.")

        destination_blob_name = self._unique_name(f"{folder}/{user_id}", filename)
        blob = self.bucket.blob(destination_blob_name)

        # Upload-only URL, valid for 15 minutes.
        upload_url = blob.generate_signed_url(
            version="v4",
            expiration=timedelta(minutes=15),
            method="PUT",
            content_type=content_type
        )

        return {
            "upload_url": upload_url,
            "file_path": destination_blob_name
        }

    def make_public_and_get_url(self, file_path: str, owner_id: str, upload_type: Optional[str] = None) -> str:
        """
        Make an uploaded blob public and return its URL.

        :param file_path: blob path returned by generate_upload_url
        :param owner_id: the blob must sit in this user's upload folder
        :param upload_type: restrict to that type's folder; any type when None
        :return: publicly reachable URL
        :raises PermissionError: the path is outside the owner's folders
        :raises FileNotFoundError: the blob does not exist
        """
        self._require_bucket()

        folders = [UPLOAD_FOLDERS[upload_type]] if upload_type else UPLOAD_FOLDERS.values()
        if '..' in file_path.split('/') or \
                not any(file_path.startswith(f"{folder}/{owner_id}/") for folder in folders):
            raise PermissionError("You can only publish your own uploads.")

        blob = self.bucket.blob(file_path)
        if not blob.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        try:
            blob.make_public()
            return blob.public_url
        except Exception as e:
            logger.error(f"Failed to make blob public: {e}", exc_info=True)
            raise

    def upload_file(self, data: bytes, folder: str, filename: str, content_type: str) -> str:
        """
        Upload bytes to the bucket and return the public URL.
        Transient failures are retried with exponential backoff;
        client errors (400/401/403) fail immediately.
        """
        self._require_bucket()
        destination_blob_name = self._unique_name(folder, filename)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_wait, min=self.retry_wait),
            retry=retry_if_not_exception_type(NON_RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                blob = self.bucket.blob(destination_blob_name)
                blob.upload_from_string(data, content_type=content_type)
                blob.make_public()

        logger.info(f"Uploaded media to {destination_blob_name}")
        return blob.public_url

    def blob_path_from_url(self, url: str) -> Optional[str]:
        """Recover the blob path from a public URL of this bucket."""
        if not url or not self.bucket:
            return None
        path = unquote(urlparse(url).path).lstrip('/')
        prefix = f"{self.bucket.name}/"
        if path.startswith(prefix):
            return path[len(prefix):]
        return None

    def delete_by_url(self, url: str) -> bool:
        """Delete the blob behind a public URL. Best effort: failures are logged."""
        file_path = self.blob_path_from_url(url)
        if not file_path:
            return False
        try:
            blob = self.bucket.blob(file_path)
            if blob.exists():
                blob.delete()
                return True
        except Exception as e:
            logger.error(f"Failed to delete stored media (url: {url}): {e}")
        return False
