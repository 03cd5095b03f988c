"""Health check API blueprint."""
from flask import Blueprint, current_app, jsonify
import logging

bp = Blueprint('health', __name__)
logger = logging.getLogger(__name__)


@bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint to verify service is running."""
    logger.info("Health check requested")
    config = current_app.config['APP_CONFIG']

    return jsonify({
        "status": "healthy",
        "service": "Media Transcript Pipeline",
        "version": "1.0.0",
        "providers": {
            "transcription": config.transcription_provider,
            "translation": config.translation_provider,
        },
    })


@bp.route('/', methods=['GET'])
def root():
    """Root endpoint with API information."""
    return jsonify({
        "service": "Media Transcript Pipeline",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "jobs": {
                "transcribe": "/api/transcribe",
                "upload": "/api/upload",
                "status": "/api/status/{jobId}",
                "cancel": "/api/cancel/{jobId}",
                "results": "/api/jobs/{jobId}/results",
                "files": "/api/files/{jobId}/{pdf|markdown|srt}",
                "recent": "/api/jobs",
                "validate_url": "/api/validate-url"
            }
        }
    })
