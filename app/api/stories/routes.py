# app/api/stories/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.stories.schemas import StoryCreateSchema, StoryResponseSchema, StoryGroupSchema
from app.api.users.schemas import UserSummarySchema
from app.services.storage_service import validate_media, IMAGE_CONTENT_TYPES, VIDEO_CONTENT_TYPES

stories_bp = Blueprint('stories_bp', __name__)


def _read_story_upload():
    """Validate the multipart 'media' field; videos get the larger size limit."""
    media = request.files.get('media')
    if media is not None and (media.mimetype or '').startswith('video/'):
        data = validate_media(media, VIDEO_CONTENT_TYPES, current_app.config['STORY_MAX_VIDEO_BYTES'])
    else:
        data = validate_media(media, IMAGE_CONTENT_TYPES, current_app.config['MAX_IMAGE_BYTES'])
    return data, media.filename, media.mimetype


@stories_bp.route('/', methods=['POST'])
@jwt_required()
def create_story():
    """Create a story from a multipart 'media' upload or a JSON media_url."""
    story_service = current_app.services['stories']
    user_id = get_jwt_identity()
    try:
        if request.mimetype == 'multipart/form-data':
            story = story_service.create_story(user_id, upload=_read_story_upload())
        else:
            data = StoryCreateSchema().load(request.get_json() or {})
            story = story_service.create_story(user_id, media_url=data['media_url'], media_type=data['media_type'])
        return jsonify(StoryResponseSchema().dump(story)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_MEDIA", "message": str(e)}), 400
    except LookupError as e:
        return jsonify({"error_code": "USER_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Error while creating story: {e}", exc_info=True)
        return jsonify({"error_code": "STORY_CREATION_FAILED", "message": "Failed to create the story."}), 500


@stories_bp.route('/feed', methods=['GET'])
@jwt_required()
def get_story_feed():
    story_service = current_app.services['stories']
    try:
        groups = story_service.get_feed(get_jwt_identity())
        return jsonify({"stories": StoryGroupSchema(many=True).dump(groups)}), 200
    except Exception as e:
        logging.error(f"Error while loading story feed: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to load stories."}), 500


@stories_bp.route('/user/<string:user_id>', methods=['GET'])
@jwt_required()
def get_user_stories(user_id: str):
    story_service = current_app.services['stories']
    try:
        stories = story_service.get_user_stories(user_id)
        return jsonify({"stories": StoryResponseSchema(many=True).dump(stories)}), 200
    except LookupError as e:
        return jsonify({"error_code": "STORIES_NOT_FOUND", "message": str(e)}), 404


@stories_bp.route('/<string:story_id>/view', methods=['POST'])
@jwt_required()
def view_story(story_id: str):
    story_service = current_app.services['stories']
    try:
        story = story_service.view_story(story_id, get_jwt_identity())
        return jsonify(StoryResponseSchema().dump(story)), 200
    except LookupError as e:
        return jsonify({"error_code": "STORY_NOT_FOUND", "message": str(e)}), 404
    except ValueError as e:
        return jsonify({"error_code": "STORY_EXPIRED", "message": str(e)}), 400


@stories_bp.route('/<string:story_id>/viewers', methods=['GET'])
@jwt_required()
def get_story_viewers(story_id: str):
    story_service = current_app.services['stories']
    try:
        viewers = story_service.get_viewers(story_id, get_jwt_identity())
        return jsonify({"viewers": UserSummarySchema(many=True).dump(viewers), "count": len(viewers)}), 200
    except LookupError as e:
        return jsonify({"error_code": "STORY_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403


@stories_bp.route('/<string:story_id>', methods=['DELETE'])
@jwt_required()
def delete_story(story_id: str):
    story_service = current_app.services['stories']
    try:
        story_service.delete_story(story_id, get_jwt_identity())
        return Response(status=204)
    except LookupError as e:
        return jsonify({"error_code": "STORY_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
