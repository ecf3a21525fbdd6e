# app/__init__.py

# =====================================================================================
# 1. Environment variables (loaded before anything reads them)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. Imports
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_socketio import SocketIO
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials, firestore

# - Settings
from app.core.config import config_by_name
from app.core.realtime import register_socket_handlers
from app.cli import messages_cli, stories_cli

# - API blueprints
from app.api.auth.routes import auth_bp
from app.api.uploads.routes import uploads_bp
from app.api.users.routes import users_bp
from app.api.relationships.routes import relationships_bp
from app.api.posts.routes import posts_bp
from app.api.comments.routes import comments_bp
from app.api.stories.routes import stories_bp
from app.api.notifications.routes import notifications_bp
from app.api.chat.routes import chat_bp

# - Services
from app.services.storage_service import StorageService
from app.services.notification_service import NotificationService
from app.services.messaging import build_message_store
from app.api.auth.services import AuthService
from app.api.relationships.services import RelationshipService
from app.api.users.services import UserService
from app.api.posts.services import PostService
from app.api.comments.services import CommentService
from app.api.stories.services import StoryService
from app.api.chat.services import ChatService


def _init_firebase(app: Flask):
    """Initialise the Firebase app once per process."""
    if firebase_admin._apps:
        return
    cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
    if not cred_path or not os.path.exists(cred_path):
        raise FileNotFoundError(f"Firebase credentials file not found: {cred_path}")
    cred = credentials.Certificate(cred_path)
    firebase_admin.initialize_app(cred, {
        'storageBucket': app.config['FIREBASE_STORAGE_BUCKET']
    })


def create_app(config_name=None, services=None):
    """
    Flask application factory.

    :param config_name: key of config_by_name; defaults to FLASK_ENV
    :param services: prebuilt instances keyed like app.services ('db',
                     'storage', 'message_store', ...). Anything missing is
                     built here.
    """
    # =====================================================================================
    # 3. Flask app and settings
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    if not app.debug:
        logging.basicConfig(
            level=app.config.get('LOG_LEVEL', 'INFO'),
            format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        )

    # =====================================================================================
    # 4. Extensions and external clients
    # =====================================================================================
    jwt = JWTManager(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    overrides = dict(services or {})
    db = overrides.get('db')
    if db is None:
        _init_firebase(app)
        db = firestore.client()

    # =====================================================================================
    # 5. Service instances, stored in 'app.services' (dependency injection)
    # =====================================================================================
    app.services = {'db': db}

    # 5-1. Shared services that others depend on
    storage_instance = overrides.get('storage')
    if storage_instance is None:
        try:
            storage_instance = StorageService()
            storage_instance.init_app(app)
            logging.info("Storage service initialized successfully")
        except Exception as e:
            logging.error(f"Failed to initialize storage service: {e}")
            raise
    app.services['storage'] = storage_instance
    app.services['notifications'] = overrides.get('notifications') or NotificationService(db)
    app.services['auth'] = overrides.get('auth') or AuthService(db)
    app.services['relationships'] = RelationshipService(db, notification_service=app.services['notifications'])

    message_store = overrides.get('message_store')
    if message_store is None:
        message_store = build_message_store(
            app.config['MESSAGE_BACKEND'], db=db, database_url=app.config.get('MESSAGE_DATABASE_URL'))
    app.services['message_store'] = message_store
    logging.info(f"Message backend: {type(message_store).__name__}")

    # 5-2. Domain services
    app.services['posts'] = PostService(
        db,
        storage_service=app.services['storage'],
        notification_service=app.services['notifications']
    )
    app.services['comments'] = CommentService(db, notification_service=app.services['notifications'])
    app.services['users'] = UserService(
        db,
        storage_service=app.services['storage'],
        post_service=app.services['posts'],
        relationship_service=app.services['relationships']
    )
    app.services['stories'] = StoryService(
        db,
        storage_service=app.services['storage'],
        relationship_service=app.services['relationships'],
        ttl_hours=app.config['STORY_TTL_HOURS']
    )
    app.services['chat'] = ChatService(
        message_store, db=db, relationship_service=app.services['relationships'])

    # 5-3. Realtime server
    socketio = SocketIO(app, cors_allowed_origins=app.config['CORS_ORIGINS'])
    register_socket_handlers(socketio)
    app.services['socketio'] = socketio

    # =====================================================================================
    # 6. JWT callbacks
    # =====================================================================================
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return app.services['auth'].is_token_revoked(jwt_payload)

    @jwt.unauthorized_loader
    def missing_token_callback(reason):
        return jsonify({"error_code": "AUTHORIZATION_REQUIRED", "message": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return jsonify({"error_code": "INVALID_TOKEN", "message": reason}), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"error_code": "TOKEN_EXPIRED", "message": "The token has expired."}), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        return jsonify({"error_code": "TOKEN_REVOKED", "message": "The token has been revoked."}), 401

    # =====================================================================================
    # 7. Blueprints and CLI
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(uploads_bp, url_prefix='/api/uploads')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(relationships_bp, url_prefix='/api/users')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(comments_bp, url_prefix='/api/posts')
    app.register_blueprint(stories_bp, url_prefix='/api/stories')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(chat_bp, url_prefix='/api/chat')

    app.cli.add_command(messages_cli)
    app.cli.add_command(stories_cli)

    # =====================================================================================
    # 8. Global error handlers
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        error_code = (err.name or "HTTP_ERROR").upper().replace(' ', '_')
        return jsonify({"error_code": error_code, "message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # Anything no other handler caught
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "An unexpected server error occurred."}
        return jsonify(response), 500

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
