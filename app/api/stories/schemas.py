# app/api/stories/schemas.py
from marshmallow import Schema, fields, validate

from app.api.posts.schemas import AuthorSchema
from app.models.story import MediaType

class StoryCreateSchema(Schema):
    """JSON body of POST /api/stories when the media is already hosted."""
    media_url = fields.Str(required=True, validate=validate.Length(min=1))
    media_type = fields.Str(load_default=MediaType.IMAGE.value,
                            validate=validate.OneOf([m.value for m in MediaType]))

class StoryResponseSchema(Schema):
    story_id = fields.Str(required=True)
    author = fields.Nested(AuthorSchema, required=True)
    media_url = fields.Str(required=True)
    media_type = fields.Str(required=True)
    viewers = fields.List(fields.Str(), dump_default=list)
    expires_at = fields.DateTime(required=True)
    created_at = fields.DateTime(required=True)

class StoryGroupSchema(Schema):
    """One author's stories in the feed."""
    user = fields.Nested(AuthorSchema, required=True)
    stories = fields.List(fields.Nested(StoryResponseSchema), required=True)
    has_unviewed = fields.Bool(required=True)
