# app/api/uploads/routes.py

import logging
from flask import request, jsonify, Blueprint, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from marshmallow import Schema, fields, ValidationError

# Every route here lives under '/api/uploads'.
uploads_bp = Blueprint('uploads', __name__)

class UploadUrlSchema(Schema):
    upload_type = fields.Str(required=True)
    filename = fields.Str(required=True)
    content_type = fields.Str(required=True)

class FilePathSchema(Schema):
    file_path = fields.Str(required=True, error_messages={"required": "file_path is required."})


@uploads_bp.route('/url', methods=['POST'])
@jwt_required()
def get_upload_url():
    """
    Issue a pre-signed URL for any file upload.
    Clients call this first and then PUT the file straight to storage.
    """
    user_id = get_jwt_identity()
    try:
        data = UploadUrlSchema().load(request.get_json() or {})
    except ValidationError as e:
        logging.warning(f"Upload URL request rejected (bad parameters): {e.messages}")
        return jsonify({
            "error_code": "INVALID_PARAMETERS",
            "message": "'upload_type', 'filename' and 'content_type' are required.",
            "details": e.messages
        }), 400

    storage_service = current_app.services['storage']
    try:
        url_info = storage_service.generate_upload_url(
            user_id, data['upload_type'], data['filename'], data['content_type'])
        return jsonify(url_info), 200
    except ValueError as e:
        logging.warning(f"Upload URL request rejected (bad upload type): {e}")
        return jsonify({"error_code": "INVALID_UPLOAD_TYPE", "message": str(e)}), 400
    except Exception as e:
        logging.error(f"Error while generating pre-signed URL: {e}", exc_info=True)
        return jsonify({"error_code": "URL_GENERATION_FAILED", "message": "Failed to generate the upload URL."}), 500


@uploads_bp.route('/finalize', methods=['POST'])
@jwt_required()
def finalize_upload():
    """Make an uploaded file public and return its URL."""
    storage_service = current_app.services['storage']
    try:
        data = FilePathSchema().load(request.get_json() or {})
        public_url = storage_service.make_public_and_get_url(data['file_path'], get_jwt_identity())
        return jsonify({"public_url": public_url}), 200
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except FileNotFoundError as e:
        return jsonify({"error_code": "FILE_NOT_FOUND", "message": str(e)}), 404
    except PermissionError as e:
        return jsonify({"error_code": "FORBIDDEN", "message": str(e)}), 403
    except Exception as e:
        logging.error(f"Error while publishing file: {e}", exc_info=True)
        return jsonify({"error_code": "INTERNAL_SERVER_ERROR", "message": "Failed to process the file."}), 500
