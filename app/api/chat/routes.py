# app/api/chat/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.chat.schemas import (
    MessageCreateSchema,
    MarkReadSchema,
    MessageResponseSchema,
    ConversationResponseSchema,
)

chat_bp = Blueprint('chat_bp', __name__)


def _error_response(e: Exception):
    if isinstance(e, ValidationError):
        return jsonify({"error_code": "VALIDATION_ERROR", "details": e.messages}), 400
    if isinstance(e, LookupError):
        return jsonify({"error_code": "NOT_FOUND", "message": str(e)}), 404
    if isinstance(e, PermissionError):
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    if isinstance(e, ValueError):
        return jsonify({"error_code": "INVALID_REQUEST", "message": str(e)}), 400
    logging.error(f"Chat request failed: {e}", exc_info=True)
    return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "An internal server error occurred."}), 500


@chat_bp.route('/conversations', methods=['GET'])
@jwt_required()
def get_conversations():
    """The caller's conversations, most recently active first."""
    chat_service = current_app.services['chat']
    try:
        conversations = chat_service.list_conversations(get_jwt_identity())
        return jsonify({"conversations": ConversationResponseSchema(many=True).dump(conversations)}), 200
    except Exception as e:
        return _error_response(e)


@chat_bp.route('/conversations/<string:user_id>', methods=['GET'])
@jwt_required()
def get_or_create_conversation(user_id: str):
    chat_service = current_app.services['chat']
    try:
        conversation = chat_service.get_or_create_conversation(get_jwt_identity(), user_id)
        return jsonify(ConversationResponseSchema().dump(conversation)), 200
    except Exception as e:
        return _error_response(e)


@chat_bp.route('/conversations/<string:conversation_id>/read', methods=['POST'])
@jwt_required()
def mark_conversation_read(conversation_id: str):
    chat_service = current_app.services['chat']
    try:
        marked = chat_service.mark_conversation_read(get_jwt_identity(), conversation_id)
        return jsonify({"marked_message_ids": marked}), 200
    except Exception as e:
        return _error_response(e)


@chat_bp.route('/messages', methods=['POST'])
@jwt_required()
def send_message():
    """
    Send a direct message.
    - Creates the conversation on first contact.
    - Pushes 'receive_message' to the conversation room.
    """
    chat_service = current_app.services['chat']
    user_id = get_jwt_identity()
    try:
        data = MessageCreateSchema().load(request.get_json() or {})
        message = chat_service.send_message(
            user_id, data['recipient_id'],
            text=data.get('text'), media_url=data.get('media_url'), media_type=data.get('media_type')
        )
        payload = MessageResponseSchema().dump(message)
        socketio = current_app.services.get('socketio')
        if socketio:
            socketio.emit('receive_message', payload, to=message['conversation_id'])
        return jsonify(payload), 201
    except Exception as e:
        return _error_response(e)


@chat_bp.route('/messages/unread', methods=['GET'])
@jwt_required()
def get_unread_count():
    chat_service = current_app.services['chat']
    return jsonify({"unread_count": chat_service.count_unread(get_jwt_identity())}), 200


@chat_bp.route('/messages/mark_as_read', methods=['POST'])
@jwt_required()
def mark_as_read():
    chat_service = current_app.services['chat']
    try:
        data = MarkReadSchema().load(request.get_json() or {})
        marked = chat_service.mark_conversation_read(get_jwt_identity(), data['conversation_id'])
        return jsonify({"marked_message_ids": marked}), 200
    except Exception as e:
        return _error_response(e)


@chat_bp.route('/messages/<string:conversation_id>', methods=['GET'])
@jwt_required()
def get_messages(conversation_id: str):
    """A page of messages; page 1 is the newest, each page in chronological order."""
    chat_service = current_app.services['chat']
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)
    try:
        result = chat_service.get_messages(get_jwt_identity(), conversation_id, page, limit)
        result['messages'] = MessageResponseSchema(many=True).dump(result['messages'])
        return jsonify(result), 200
    except Exception as e:
        return _error_response(e)
