# app/api/auth/routes.py

import logging
import jwt
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
)
from marshmallow import ValidationError

from app.api.auth.schemas import RegisterSchema, LoginSchema, LogoutRequestSchema
from app.api.users.schemas import UserPrivateResponseSchema
from app.core.security import decode_unverified_expiry

auth_bp = Blueprint('auth_bp', __name__)


def _token_response(user: dict, status: int):
    identity = user['user_id']
    return jsonify({
        "access_token": create_access_token(identity=identity),
        "refresh_token": create_refresh_token(identity=identity),
        "user": UserPrivateResponseSchema().dump(user)
    }), status


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an account and sign the new user in."""
    auth_service = current_app.services['auth']
    try:
        data = RegisterSchema().load(request.get_json() or {})
        user = auth_service.register_user(data['name'], data['username'], data['email'], data['password'])
        return _token_response(user, 201)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "USER_ALREADY_EXISTS", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Error during registration: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred."}), 500


@auth_bp.route('/login', methods=['POST'])
def login():
    """Email/password login."""
    auth_service = current_app.services['auth']
    try:
        data = LoginSchema().load(request.get_json() or {})
        user = auth_service.authenticate(data['email'], data['password'])
        if not user:
            return jsonify({"error_code": "INVALID_CREDENTIALS", "message": "Invalid email or password."}), 401
        return _token_response(user, 200)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except Exception as e:
        logging.error(f"Error during login: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred."}), 500


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    """The caller's own profile."""
    auth_service = current_app.services['auth']
    user = auth_service.get_user(get_jwt_identity())
    if not user:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": "User not found."}), 404
    return jsonify(UserPrivateResponseSchema().dump(user)), 200


# --- Token refresh ---
@auth_bp.route('/token/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_token():
    """Issue a new access token for a valid refresh token."""
    # The decorator checks presence, signature, expiry, token type and the blocklist.
    current_user_id = get_jwt_identity()
    new_access_token = create_access_token(identity=current_user_id)
    return jsonify(access_token=new_access_token), 200


# --- Logout ---
@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Revoke the given access and refresh tokens."""
    auth_service = current_app.services['auth']
    try:
        data = LogoutRequestSchema().load(request.get_json() or {})

        # Expired tokens must still be revocable, so expiry is not verified here.
        decoded_access = decode_unverified_expiry(data['access_token'])
        decoded_refresh = decode_unverified_expiry(data['refresh_token'])

        auth_service.logout_user(
            decoded_access['jti'], decoded_access['exp'],
            decoded_refresh['jti'], decoded_refresh['exp']
        )
        return jsonify({"message": "Logged out."}), 200

    except ValidationError as e:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    except (jwt.PyJWTError, KeyError) as e:
        logging.error(f"Could not decode token at logout: {e}", exc_info=True)
        return jsonify({"error_code": "INVALID_TOKEN", "message": "Invalid token."}), 422
    except Exception as e:
        logging.error(f"Error during logout: {e}", exc_info=True)
        return jsonify({"error_code": "LOGOUT_FAILED", "message": "Logout failed."}), 500
