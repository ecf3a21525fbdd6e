# app/api/notifications/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from app.api.notifications.schemas import NotificationResponseSchema

MAX_PAGE_SIZE = 100

notifications_bp = Blueprint('notifications_bp', __name__)


@notifications_bp.route('/', methods=['GET'])
@jwt_required()
def get_notifications():
    """The caller's notifications, newest first, page/limit paginated."""
    notification_service = current_app.services['notifications']
    user_id = get_jwt_identity()
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 20, type=int), 1), MAX_PAGE_SIZE)
    try:
        notifications, has_more = notification_service.get_notifications(user_id, page, limit)
        return jsonify({
            "notifications": NotificationResponseSchema(many=True).dump(notifications),
            "unread_count": notification_service.count_unread(user_id),
            "page": page,
            "has_more": has_more
        }), 200
    except Exception as e:
        logging.error(f"Error while loading notifications (user_id: {user_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to load notifications."}), 500


@notifications_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count():
    notification_service = current_app.services['notifications']
    return jsonify({"unread_count": notification_service.count_unread(get_jwt_identity())}), 200


@notifications_bp.route('/read-all', methods=['PUT'])
@jwt_required()
def mark_all_as_read():
    notification_service = current_app.services['notifications']
    updated = notification_service.mark_all_as_read(get_jwt_identity())
    return jsonify({"success": True, "updated": updated}), 200


@notifications_bp.route('/<string:notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_as_read(notification_id: str):
    notification_service = current_app.services['notifications']
    try:
        notification = notification_service.mark_as_read(notification_id, get_jwt_identity())
        return jsonify(NotificationResponseSchema().dump(notification)), 200
    except LookupError as e:
        return jsonify({"error_code": "NOTIFICATION_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
