# app/api/relationships/routes.py
import logging
from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.api.users.schemas import UserSummarySchema, RelationshipFlagsSchema

# Shares the '/api/users' prefix with users_bp.
relationships_bp = Blueprint('relationships_bp', __name__)


def _perform(action_name: str, target_id: str, message: str):
    """
    Run one relationship mutation for the caller against target_id and
    map service exceptions onto HTTP responses.
    """
    relationship_service = current_app.services['relationships']
    user_id = get_jwt_identity()
    try:
        getattr(relationship_service, action_name)(user_id, target_id)
        flags = relationship_service.relationship_flags(user_id, target_id)
        return jsonify({"message": message, "relationship": RelationshipFlagsSchema().dump(flags) if flags else None}), 200
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except ValueError as e:
        return jsonify({"error_code": "INVALID_REQUEST", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Relationship action '{action_name}' failed ({user_id} -> {target_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred."}), 500


def _user_list(loader_name: str, user_id: str, key: str):
    relationship_service = current_app.services['relationships']
    try:
        users = getattr(relationship_service, loader_name)(user_id)
        return jsonify({key: UserSummarySchema(many=True).dump(users), "count": len(users)}), 200
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Failed to load '{key}' for user {user_id}: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred."}), 500


# --- follow ---
@relationships_bp.route('/<string:user_id>/follow', methods=['POST'])
@jwt_required()
def follow_user(user_id: str):
    return _perform('follow', user_id, "User followed.")

@relationships_bp.route('/<string:user_id>/follow', methods=['DELETE'])
@jwt_required()
def unfollow_user(user_id: str):
    return _perform('unfollow', user_id, "User unfollowed.")


# --- friend requests ---
@relationships_bp.route('/<string:user_id>/friend-request', methods=['POST'])
@jwt_required()
def send_friend_request(user_id: str):
    return _perform('send_friend_request', user_id, "Friend request sent.")

@relationships_bp.route('/<string:user_id>/friend-request', methods=['DELETE'])
@jwt_required()
def cancel_friend_request(user_id: str):
    return _perform('cancel_friend_request', user_id, "Friend request cancelled.")

@relationships_bp.route('/<string:user_id>/accept-request', methods=['POST'])
@jwt_required()
def accept_friend_request(user_id: str):
    return _perform('accept_friend_request', user_id, "Friend request accepted.")

@relationships_bp.route('/<string:user_id>/reject-request', methods=['POST'])
@jwt_required()
def reject_friend_request(user_id: str):
    return _perform('reject_friend_request', user_id, "Friend request rejected.")

@relationships_bp.route('/friend-requests', methods=['GET'])
@jwt_required()
def get_friend_requests():
    """Incoming friend requests of the caller."""
    return _user_list('get_incoming_requests', get_jwt_identity(), 'requests')

@relationships_bp.route('/sent-requests', methods=['GET'])
@jwt_required()
def get_sent_requests():
    return _user_list('get_sent_requests', get_jwt_identity(), 'requests')


# --- graph listings ---
@relationships_bp.route('/<string:user_id>/followers', methods=['GET'])
@jwt_required(optional=True)
def get_followers(user_id: str):
    return _user_list('get_followers', user_id, 'followers')

@relationships_bp.route('/<string:user_id>/following', methods=['GET'])
@jwt_required(optional=True)
def get_following(user_id: str):
    return _user_list('get_following', user_id, 'following')

@relationships_bp.route('/<string:user_id>/friends', methods=['GET'])
@jwt_required(optional=True)
def get_friends(user_id: str):
    """Users who follow each other with user_id."""
    return _user_list('get_friends', user_id, 'friends')


# --- blocks ---
@relationships_bp.route('/<string:user_id>/block', methods=['POST'])
@jwt_required()
def block_user(user_id: str):
    return _perform('block', user_id, "User blocked.")

@relationships_bp.route('/<string:user_id>/block', methods=['DELETE'])
@jwt_required()
def unblock_user(user_id: str):
    return _perform('unblock', user_id, "User unblocked.")

@relationships_bp.route('/blocked', methods=['GET'])
@jwt_required()
def get_blocked_users():
    return _user_list('get_blocked', get_jwt_identity(), 'blocked')
