# app/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import ValidationError

from app.api.posts.schemas import PostCreateSchema, PostUpdateSchema, PostResponseSchema
from app.services.storage_service import validate_media, IMAGE_CONTENT_TYPES

MAX_POST_IMAGES = 5

posts_bp = Blueprint('posts_bp', __name__)


def _read_post_form():
    """Split a create request into validated fields and uploaded images."""
    if request.mimetype == 'multipart/form-data':
        form = {k: v for k, v in request.form.items() if k in ('description', 'mood')}
        data = PostCreateSchema().load(form)

        files = [f for f in request.files.getlist('images') if f and f.filename]
        if len(files) > MAX_POST_IMAGES:
            raise ValueError(f"A post can have at most {MAX_POST_IMAGES} images.")
        max_bytes = current_app.config['MAX_IMAGE_BYTES']
        images = [
            (validate_media(f, IMAGE_CONTENT_TYPES, max_bytes), f.filename, f.mimetype)
            for f in files
        ]
        return data, images

    data = PostCreateSchema().load(request.get_json() or {})
    return data, []


@posts_bp.route('/', methods=['POST'])
@jwt_required()
def create_post():
    """
    Create a post.
    - Accepts JSON (with pre-signed file_paths) or multipart with 'images'.
    - Returns the new post with 201 Created.
    """
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        data, images = _read_post_form()
        new_post = post_service.create_post(
            user_id, data['description'], mood=data.get('mood'),
            images=images, file_paths=data.get('file_paths')
        )
        return jsonify(PostResponseSchema().dump(new_post)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except ValueError as e:
        return jsonify({"error_code": "INVALID_MEDIA", "message": str(e)}), 400
    except (LookupError, FileNotFoundError) as e:
        return jsonify({"error_code": "RESOURCE_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Error while creating post: {e}", exc_info=True)
        return jsonify({"error_code": "POST_CREATION_FAILED", "message": "Failed to create the post."}), 500


@posts_bp.route('/', methods=['GET'])
@jwt_required(optional=True)  # anonymous users can read the feed too
def get_posts():
    """Feed of posts, newest first, cursor paginated."""
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    limit = min(max(request.args.get('limit', 10, type=int), 1), 50)
    cursor = request.args.get('cursor', None, type=str)
    try:
        posts, next_cursor = post_service.get_posts(user_id, limit, cursor)
        return jsonify({
            "posts": PostResponseSchema(many=True).dump(posts),
            "next_cursor": next_cursor
        }), 200
    except Exception as e:
        logging.error(f"Error while listing posts: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to load posts."}), 500


@posts_bp.route('/users/<string:author_id>/posts', methods=['GET'])
@jwt_required(optional=True)
def get_user_posts(author_id: str):
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    limit = min(max(request.args.get('limit', 10, type=int), 1), 50)
    cursor = request.args.get('cursor', None, type=str)
    try:
        posts, next_cursor = post_service.get_posts_by_user_id(author_id, user_id, limit, cursor)
        return jsonify({
            "posts": PostResponseSchema(many=True).dump(posts),
            "next_cursor": next_cursor
        }), 200
    except Exception as e:
        logging.error(f"Error while listing posts of user {author_id}: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to load posts."}), 500


@posts_bp.route('/<string:post_id>', methods=['GET'])
@jwt_required(optional=True)
def get_post(post_id: str):
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    post = post_service.get_post_by_id(post_id, user_id)
    if not post:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": "Post not found."}), 404
    return jsonify(PostResponseSchema().dump(post)), 200


@posts_bp.route('/<string:post_id>', methods=['PATCH'])
@jwt_required()
def update_post(post_id: str):
    """Edit a post's description or mood (author only)."""
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        data = PostUpdateSchema().load(request.get_json() or {})
        updated_post = post_service.update_post(post_id, user_id, data)
        return jsonify(PostResponseSchema().dump(updated_post)), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except LookupError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404


@posts_bp.route('/<string:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id: str):
    """Delete a post with its images, comments and likes (author only)."""
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        post_service.delete_post(post_id, user_id)
        return Response(status=204)
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except LookupError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404


@posts_bp.route('/<string:post_id>/like', methods=['POST'])
@jwt_required()
def toggle_post_like(post_id: str):
    post_service = current_app.services['posts']
    user_id = get_jwt_identity()
    try:
        is_liked, like_count = post_service.toggle_post_like(user_id, post_id)
        return jsonify({"is_liked": is_liked, "like_count": like_count}), 200
    except LookupError as e:
        return jsonify({"error_code": "POST_NOT_FOUND", "message": str(e)}), 404
    except Exception as e:
        logging.error(f"Error while toggling like (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to update the like."}), 500
