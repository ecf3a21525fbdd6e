# app/api/comments/schemas.py
from marshmallow import Schema, fields, validate
from app.api.posts.schemas import AuthorSchema  # same author shape as posts

class CommentCreateSchema(Schema):
    """
    POST /api/posts/{post_id}/comments
    """
    text = fields.Str(required=True, validate=validate.Length(min=1, max=1000, error="A comment must be 1-1000 characters."))

class CommentResponseSchema(Schema):
    comment_id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    author = fields.Nested(AuthorSchema, required=True)
    text = fields.Str(required=True)
    created_at = fields.DateTime(required=True)
