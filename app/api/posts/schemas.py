# app/api/posts/schemas.py
from marshmallow import Schema, fields, validate

# --- Nested schemas ---
class AuthorSchema(Schema):
    """Author snapshot included in post, comment and story responses."""
    user_id = fields.Str(required=True)
    username = fields.Str(required=True)
    name = fields.Str(required=True)
    profile_picture = fields.Str(allow_none=True)

# --- Request/response schemas ---

class PostCreateSchema(Schema):
    """Validates the POST /api/posts body (JSON or multipart form fields)."""
    description = fields.Str(required=True, validate=validate.Length(min=1, max=2000))
    mood = fields.Str(allow_none=True, validate=validate.Length(max=50))
    file_paths = fields.List(fields.Str(), load_default=list, validate=validate.Length(max=5))

class PostUpdateSchema(Schema):
    """Validates the PATCH /api/posts/{post_id} body."""
    description = fields.Str(validate=validate.Length(min=1, max=2000))
    mood = fields.Str(allow_none=True, validate=validate.Length(max=50))

class PostResponseSchema(Schema):
    """Final JSON shape of a post."""
    post_id = fields.Str(dump_only=True)
    author = fields.Nested(AuthorSchema, required=True)
    description = fields.Str(required=True)
    mood = fields.Str(allow_none=True)
    image_urls = fields.List(fields.Str(), required=True)
    like_count = fields.Int(required=True)
    comment_count = fields.Int(required=True)
    created_at = fields.DateTime(required=True)
    updated_at = fields.DateTime(required=True)
    is_liked = fields.Bool(dump_only=True, dump_default=False)
