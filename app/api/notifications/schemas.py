# app/api/notifications/schemas.py
from marshmallow import Schema, fields

from app.api.users.schemas import UserSummarySchema

class NotificationResponseSchema(Schema):
    notification_id = fields.Str(required=True)
    recipient_id = fields.Str(required=True)
    sender = fields.Nested(UserSummarySchema, required=True)
    type = fields.Str(required=True)
    post_id = fields.Str(allow_none=True)
    comment_id = fields.Str(allow_none=True)
    target_summary = fields.Str(allow_none=True)
    is_read = fields.Bool(required=True)
    created_at = fields.DateTime(required=True)
