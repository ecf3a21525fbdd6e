# app/core/realtime.py
"""
Socket.IO events for live message delivery.

Clients join one room per conversation (the room name is the conversation
id); messages sent over REST or over the socket are relayed to that room
as 'receive_message'. Only participants of a conversation may join its
room or send into it.
"""

import logging
from flask import request, session, current_app
from flask_socketio import SocketIO, join_room, leave_room, emit, ConnectionRefusedError

from app.core.security import identity_from_token


def _conversation_id(payload):
    if isinstance(payload, dict):
        return payload.get('conversation_id') or payload.get('conversation')
    return payload


def _allowed(conversation_id) -> bool:
    """The connected user takes part in the conversation."""
    chat_service = current_app.services['chat']
    if chat_service.is_participant(session.get('user_id'), conversation_id):
        return True
    logging.warning(f"Socket {request.sid} denied access to conversation {conversation_id}")
    emit('error', {"error_code": "CONVERSATION_NOT_FOUND", "conversation_id": conversation_id})
    return False


def register_socket_handlers(socketio: SocketIO):
    """Attach the event handlers to the application's SocketIO server."""

    @socketio.on('connect')
    def handle_connect(auth=None):
        token = (auth or {}).get('token') if isinstance(auth, dict) else None
        token = token or request.args.get('token')
        user_id = identity_from_token(token)
        if not user_id:
            raise ConnectionRefusedError('unauthorized')
        session['user_id'] = user_id
        logging.info(f"Socket connected: {request.sid} (user: {user_id})")

    @socketio.on('join_conversation')
    def handle_join(payload):
        conversation_id = _conversation_id(payload)
        if conversation_id and _allowed(conversation_id):
            join_room(conversation_id)
            logging.info(f"Socket {request.sid} joined conversation {conversation_id}")

    @socketio.on('leave_conversation')
    def handle_leave(payload):
        conversation_id = _conversation_id(payload)
        if conversation_id:
            leave_room(conversation_id)
            logging.info(f"Socket {request.sid} left conversation {conversation_id}")

    @socketio.on('send_message')
    def handle_send_message(payload):
        conversation_id = _conversation_id(payload)
        if not conversation_id:
            logging.warning(f"send_message without conversation id from {request.sid}")
            return
        if _allowed(conversation_id):
            emit('receive_message', payload, to=conversation_id)

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        logging.info(f"Socket disconnected: {request.sid}")

    return socketio
