# app/api/chat/schemas.py
from marshmallow import Schema, fields, validate, pre_load, EXCLUDE

from app.api.users.schemas import UserSummarySchema
from app.models.story import MediaType

class MessageCreateSchema(Schema):
    """POST /api/chat/messages. 'recipientId' is accepted as an alias."""
    class Meta:
        unknown = EXCLUDE

    recipient_id = fields.Str(required=True)
    text = fields.Str(allow_none=True, validate=validate.Length(max=5000))
    media_url = fields.Str(allow_none=True)
    media_type = fields.Str(allow_none=True, validate=validate.OneOf([m.value for m in MediaType]))

    @pre_load
    def accept_camel_case(self, data, **kwargs):
        if isinstance(data, dict) and 'recipient_id' not in data and 'recipientId' in data:
            data = dict(data)
            data['recipient_id'] = data['recipientId']
        return data

class MarkReadSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    conversation_id = fields.Str(required=True)

class MessageResponseSchema(Schema):
    message_id = fields.Str(required=True)
    conversation_id = fields.Str(required=True)
    sender_id = fields.Str(required=True)
    recipient_id = fields.Str(required=True)
    text = fields.Str(allow_none=True)
    media_url = fields.Str(allow_none=True)
    media_type = fields.Str(allow_none=True)
    read = fields.Bool(required=True)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(required=True)

class ConversationResponseSchema(Schema):
    conversation_id = fields.Str(required=True)
    participants = fields.List(fields.Nested(UserSummarySchema), required=True)
    last_message = fields.Nested(MessageResponseSchema, allow_none=True)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(required=True)
