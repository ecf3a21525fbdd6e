# app/core/security.py
import logging
from typing import Optional

import jwt
from flask import current_app
from flask_jwt_extended import decode_token
from werkzeug.security import generate_password_hash, check_password_hash

ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def decode_unverified_expiry(token: str) -> dict:
    """
    Decode a token's claims without checking expiry.
    Used at logout so already-expired tokens can still be revoked.
    """
    secret_key = current_app.config['JWT_SECRET_KEY']
    algorithm = current_app.config.get('JWT_ALGORITHM', ALGORITHM)
    return jwt.decode(token, secret_key, algorithms=[algorithm], options={"verify_exp": False})


def identity_from_token(token: Optional[str]) -> Optional[str]:
    """
    Return the user id of a valid, unrevoked access token, else None.
    Socket connections carry their token outside the Authorization header,
    so they are checked here instead of with @jwt_required.
    """
    if not token:
        return None
    try:
        payload = decode_token(token)
    except Exception as e:
        logging.warning(f"Socket token rejected: {e}")
        return None

    if payload.get('type') != 'access':
        return None

    auth_service = current_app.services.get('auth')
    if auth_service and auth_service.is_token_revoked(payload):
        return None
    return payload.get('sub')
