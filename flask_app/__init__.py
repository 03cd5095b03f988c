"""Flask application factory following Flask best practices."""
from flask import Flask
from flask_cors import CORS
import logging
from typing import Optional

from utils.config import get_app_config
from utils.logging import configure_logging


def create_app(config_override: Optional[dict] = None, supervisor=None) -> Flask:
    """Create and configure Flask application using application factory pattern.

    Args:
        config_override: Optional Flask configuration overrides for testing.
            An ``APP_CONFIG`` entry replaces the environment-derived config.
        supervisor: Optional pre-built ``JobSupervisor`` (tests inject one
            wired to fake stages)

    Returns:
        Flask app instance
    """
    app = Flask(__name__)

    config_override = dict(config_override or {})
    config = config_override.pop('APP_CONFIG', None) or get_app_config()

    # Since config is frozen, we use app.config for Flask settings
    for key, value in config_override.items():
        app.config[key] = value

    # Store config in app for easy access
    app.config['APP_CONFIG'] = config
    # Multipart overhead on top of the audio size limit; the exact limit is
    # enforced when the upload is saved.
    if app.config.get('MAX_CONTENT_LENGTH') is None:
        app.config['MAX_CONTENT_LENGTH'] = config.jobs.max_upload_bytes + 1024 * 1024

    origins = list(config.allowed_origins)
    CORS(app, origins="*" if origins == ["*"] else origins)

    # Setup logging
    configure_logging()

    init_services(app, config, supervisor)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    return app


def init_services(app: Flask, config, supervisor=None) -> None:
    """Attach the job supervisor, upload storage and URL checker to the app."""
    from flask_app.clients.video_processor import VideoProcessor
    from flask_app.services.job_supervisor import create_job_supervisor
    from flask_app.services.storage import LocalFileStorage

    if supervisor is None:
        supervisor = create_job_supervisor(config)
        logging.info("Job supervisor created (%s / %s)",
                     config.transcription_provider, config.translation_provider)

    app.extensions['job_supervisor'] = supervisor
    app.extensions['upload_storage'] = LocalFileStorage(config.storage, config.jobs.max_upload_bytes)
    app.extensions.setdefault('video_processor', VideoProcessor())


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    # Import blueprints here to avoid circular imports
    from flask_app.api.health import bp as health_bp
    from flask_app.api.jobs import bp as jobs_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(jobs_bp, url_prefix='/api')


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""
    from flask import jsonify
    from werkzeug.exceptions import HTTPException
    from flask_app.services.storage import UploadTooLargeError
    from utils.exceptions import (
        ArtifactNotFoundError,
        InvalidInputError,
        InvalidJobStateError,
        JobNotFoundError,
        JobNotReadyError,
        ServiceError,
    )

    @app.errorhandler(InvalidInputError)
    def handle_invalid_input(error):
        return jsonify({'error': str(error)}), 400

    @app.errorhandler(UploadTooLargeError)
    def handle_upload_too_large(error):
        return jsonify({'error': str(error)}), 413

    @app.errorhandler(JobNotFoundError)
    def handle_job_not_found(error):
        return jsonify({'error': 'Job not found', 'jobId': error.job_id}), 404

    @app.errorhandler(ArtifactNotFoundError)
    def handle_artifact_not_found(error):
        return jsonify({'error': str(error)}), 404

    @app.errorhandler(InvalidJobStateError)
    def handle_invalid_state(error):
        return jsonify({'error': str(error), 'status': error.status}), 400

    @app.errorhandler(JobNotReadyError)
    def handle_not_ready(error):
        return jsonify({'error': str(error), 'status': error.status}), 409

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        app.logger.error(f"Service error: {error}")
        return jsonify({'error': str(error)}), 503

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(413)
    def too_large(error):
        limit_mb = app.config['APP_CONFIG'].jobs.max_upload_bytes // (1024 * 1024)
        return jsonify({'error': f'File too large. Maximum size is {limit_mb}MB'}), 413

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'error': error.description}), error.code
