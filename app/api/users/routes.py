# app/api/users/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.users.schemas import (
    UserPublicResponseSchema,
    UserPrivateResponseSchema,
    UserSummarySchema,
    ProfileUpdateSchema,
    ProfileImageSchema,
)
from app.services.storage_service import validate_media, IMAGE_CONTENT_TYPES

users_bp = Blueprint('users_bp', __name__)


@users_bp.route('/search', methods=['GET'])
@jwt_required(optional=True)
def search_users():
    """Prefix search on username and name."""
    user_service = current_app.services['users']
    query = request.args.get('query', '', type=str)
    if not query.strip():
        return jsonify({"error_code": "INVALID_QUERY", "message": "The 'query' parameter is required."}), 400
    try:
        users = user_service.search_users(query, get_jwt_identity())
        return jsonify({"users": UserSummarySchema(many=True).dump(users)}), 200
    except Exception as e:
        logging.error(f"User search failed (query: {query}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Search failed."}), 500


@users_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    """Partial update of the caller's profile."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = ProfileUpdateSchema().load(request.get_json() or {})
        updated_user = user_service.update_profile(user_id, data)
        return jsonify(UserPrivateResponseSchema().dump(updated_user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_PAYLOAD", "message": str(e)}), 400
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404


@users_bp.route('/upload-profile-picture', methods=['POST'])
@jwt_required()
def upload_profile_picture():
    """Multipart upload of a new profile picture in the 'image' field."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        image = request.files.get('image')
        data = validate_media(image, IMAGE_CONTENT_TYPES, current_app.config['MAX_IMAGE_BYTES'])
        updated_user = user_service.upload_profile_picture(user_id, data, image.filename, image.mimetype)
        return jsonify({
            "profile_picture": updated_user.get('profile_picture'),
            "user": UserPrivateResponseSchema().dump(updated_user)
        }), 200
    except ValueError as e:
        return jsonify({"error_code": "INVALID_MEDIA", "message": str(e)}), 400
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Profile picture upload failed (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "UPLOAD_FAILED", "message": "Failed to upload the profile picture."}), 500


@users_bp.route('/me/profile-image', methods=['PATCH'])
@jwt_required()
def update_my_profile_image():
    """Finalize a pre-signed profile picture upload."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        data = ProfileImageSchema().load(request.get_json() or {})
        updated_user = user_service.update_user_profile_image(user_id, data['file_path'])
        return jsonify(UserPrivateResponseSchema().dump(updated_user)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except FileNotFoundError as e:
        return jsonify({"error_code": "FILE_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Profile image update failed (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to update the profile image."}), 500


@users_bp.route('/me', methods=['DELETE'])
@jwt_required()
def delete_my_account():
    """Permanently delete the caller's account."""
    user_service = current_app.services['users']
    user_id = get_jwt_identity()
    try:
        user_service.delete_user_account(user_id)
        return Response(status=204)
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Account deletion failed (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "ACCOUNT_DELETION_FAILED", "message": "Failed to delete the account."}), 500


@users_bp.route('/<string:user_id>', methods=['GET'])
@jwt_required(optional=True)
def get_user_profile(user_id: str):
    """Public profile with post count and, for signed-in callers, relationship flags."""
    user_service = current_app.services['users']
    try:
        user_profile = user_service.get_user_profile(user_id, get_jwt_identity())
        if not user_profile:
            return jsonify({"error_code": "USER_NOT_FOUND", "message": "User not found."}), 404
        return jsonify(UserPublicResponseSchema().dump(user_profile)), 200
    except Exception as e:
        logging.error(f"Error while loading profile (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "PROFILE_FETCH_FAILED", "message": "Failed to load the profile."}), 500
