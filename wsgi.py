"""WSGI entry point for production deployment with gunicorn."""

from flask_app import create_app

# Jobs live in process memory: run gunicorn with a single worker process
# (use --threads for concurrency) so every request sees the same jobs.
app = create_app()

# Export app for gunicorn
application = app
