# app/api/auth/services.py
import uuid
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from dataclasses import asdict
from firebase_admin import firestore

from app.core.security import hash_password, verify_password
from app.models.user import User
from app.utils.datetime_utils import DateTimeUtils


class AuthService:
    """Account creation, credential checks and the token blocklist."""

    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.revoked_tokens_ref = self.db.collection('revoked_tokens')

    def _find_one(self, field: str, value: str) -> Optional[Dict[str, Any]]:
        query = self.users_ref.where(field, '==', value).limit(1).stream()
        user_doc = next(query, None)
        return user_doc.to_dict() if user_doc else None

    def register_user(self, name: str, username: str, email: str, password: str) -> Dict[str, Any]:
        """
        Create a new account.

        :raises ValueError: the username (case-insensitive) or email is taken
        """
        email = email.strip().lower()
        if self._find_one('username_lower', username.lower()):
            raise ValueError("Username is already taken.")
        if self._find_one('email', email):
            raise ValueError("An account with this email already exists.")

        user_id = str(uuid.uuid4())
        new_user = User(
            user_id=user_id,
            username=username,
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
        )
        user_data = DateTimeUtils.for_firestore(asdict(new_user))
        self.users_ref.document(user_id).set(user_data)
        logging.info(f"User registered: {user_id} ({username})")
        return user_data

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the user document when the credentials match, else None."""
        user_data = self._find_one('email', email.strip().lower())
        if not user_data or not verify_password(user_data.get('password_hash'), password):
            return None
        return user_data

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.users_ref.document(user_id).get()
        return doc.to_dict() if doc.exists else None

    # --- Blocklist ---
    def add_token_to_blocklist(self, jti: str, expires: datetime):
        """Store the token's jti with its expiry in Firestore."""
        try:
            token_data = {
                'revoked_at': DateTimeUtils.now(),
                'expires_at': expires
            }
            token_data = DateTimeUtils.for_firestore(token_data)
            self.revoked_tokens_ref.document(jti).set(token_data)
        except Exception as e:
            logging.error(f"Failed to add token to blocklist (jti: {jti}): {e}")
            raise

    def is_token_revoked(self, jwt_payload: dict) -> bool:
        """Check the blocklist for the token's jti."""
        jti = jwt_payload['jti']
        doc = self.revoked_tokens_ref.document(jti).get()
        return doc.exists

    def logout_user(self, access_jti: str, access_exp: int, refresh_jti: str, refresh_exp: int):
        """Put both the access and the refresh token on the blocklist."""
        access_expires = datetime.fromtimestamp(access_exp, tz=timezone.utc)
        refresh_expires = datetime.fromtimestamp(refresh_exp, tz=timezone.utc)
        self.add_token_to_blocklist(access_jti, access_expires)
        self.add_token_to_blocklist(refresh_jti, refresh_expires)
        logging.info(f"User logged out. JTI: {access_jti[:8]}..., {refresh_jti[:8]}...")
