# app/api/users/schemas.py
from marshmallow import Schema, fields, validate

class UserSummarySchema(Schema):
    """Small user summary used in lists (followers, search results, viewers)."""
    user_id = fields.Str(required=True)
    username = fields.Str(required=True)
    name = fields.Str(required=True)
    profile_picture = fields.Str(allow_none=True)

class RelationshipFlagsSchema(Schema):
    is_following = fields.Bool()
    is_followed_by = fields.Bool()
    is_friend = fields.Bool()
    friend_request_sent = fields.Bool()
    friend_request_received = fields.Bool()
    is_blocked = fields.Bool()

class UserPublicResponseSchema(UserSummarySchema):
    """
    GET /api/users/{user_id}
    Profile of another user. Sensitive fields (email, password hash)
    are never included.
    """
    bio = fields.Str(dump_default="")
    follower_count = fields.Int(dump_default=0)
    following_count = fields.Int(dump_default=0)
    post_count = fields.Int(dump_default=0)
    created_at = fields.DateTime()
    relationship = fields.Nested(RelationshipFlagsSchema, allow_none=True)

class UserPrivateResponseSchema(UserSummarySchema):
    """The caller's own profile (GET /api/auth/me, login and register responses)."""
    email = fields.Email(required=True)
    bio = fields.Str(dump_default="")
    follower_count = fields.Int(dump_default=0)
    following_count = fields.Int(dump_default=0)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

class ProfileUpdateSchema(Schema):
    """
    PUT /api/users/profile
    Partial update. name cannot be blank; bio may be cleared.
    """
    name = fields.Str(validate=validate.Length(min=1, max=50))
    bio = fields.Str(validate=validate.Length(max=300))
    profile_picture = fields.Str(allow_none=True)

class ProfileImageSchema(Schema):
    """PATCH /api/users/me/profile-image"""
    file_path = fields.Str(required=True, error_messages={"required": "file_path is required."})
