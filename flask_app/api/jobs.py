"""Transcription job API blueprint: submit, poll, cancel and download."""
import logging
from pathlib import Path
from flask import Blueprint, current_app, jsonify, request, send_file, url_for

from models.artifact import FILE_MIME_TYPES, normalize_file_type
from models.job import JobStatus
from utils.exceptions import InvalidInputError
from utils.validators import extract_youtube_url, is_valid_youtube_url


bp = Blueprint('jobs', __name__)
logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100


def _supervisor():
    return current_app.extensions['job_supervisor']


def _is_truthy(value) -> bool:
    return str(value).lower() in ('1', 'true', 'yes')


@bp.route('/transcribe', methods=['POST'])
def transcribe_url():
    """Start a job for a YouTube URL.

    Accepts JSON ``{"url", "startTime"?, "endTime"?}`` (seconds) or a raw
    text body containing the URL.
    """
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        url = data.get('url')
        start_time, end_time = data.get('startTime'), data.get('endTime')
    else:
        url = extract_youtube_url(request.get_data(as_text=True))
        start_time = end_time = None

    if not url:
        raise InvalidInputError('YouTube URL is required')

    job_id = _supervisor().submit_url(url, start_time, end_time)
    logger.info(f"Transcription job {job_id} initiated for {url}")
    return jsonify({
        'jobId': job_id,
        'status': JobStatus.INITIATED.value,
        'message': 'Transcription job initiated',
    }), 201


@bp.route('/upload', methods=['POST'])
def upload_audio():
    """Start a job for an uploaded audio file (multipart field ``audioFile``)."""
    storage = current_app.extensions['upload_storage']
    audio_file = request.files.get('audioFile')
    path = storage.save_upload(audio_file)
    title = request.form.get('title') or f"Uploaded Audio: {Path(audio_file.filename).stem}"
    try:
        job_id = _supervisor().submit_upload(path, title=title)
    except Exception:
        path.unlink(missing_ok=True)
        raise
    return jsonify({
        'jobId': job_id,
        'status': JobStatus.INITIATED.value,
        'message': 'Audio upload received, processing started',
    }), 201


@bp.route('/status/<job_id>', methods=['GET'])
def job_status(job_id):
    return jsonify(_supervisor().status(job_id).to_dict())


@bp.route('/cancel/<job_id>', methods=['POST'])
def cancel_job(job_id):
    job = _supervisor().cancel(job_id)
    message = (
        'Job cancelled' if job.status is JobStatus.CANCELLED
        else 'Cancellation requested; the job stops after its current stage'
    )
    return jsonify({'jobId': job.id, 'status': job.status.value, 'message': message})


@bp.route('/jobs/<job_id>/results', methods=['GET'])
def job_results(job_id):
    supervisor = _supervisor()
    artifacts = supervisor.results(job_id)
    job = supervisor.status(job_id)
    file_urls = {
        file_type: url_for('jobs.get_file', job_id=job_id, file_type=file_type)
        for file_type in artifacts.files
    }
    return jsonify({
        'jobId': job_id,
        'title': job.title,
        **artifacts.to_dict(),
        'fileUrls': file_urls,
    })


@bp.route('/files/<job_id>/<file_type>', methods=['GET'])
def get_file(job_id, file_type):
    """Download a rendered file, or ``?preview=1`` for a short text preview."""
    supervisor = _supervisor()
    if _is_truthy(request.args.get('preview', '')):
        return jsonify({'preview': supervisor.artifact_preview(job_id, file_type)})

    path = supervisor.artifact_path(job_id, file_type)
    return send_file(
        path,
        mimetype=FILE_MIME_TYPES[normalize_file_type(file_type)],
        as_attachment=True,
        download_name=path.name,
    )


@bp.route('/jobs', methods=['GET'])
def list_jobs():
    raw_limit = request.args.get('limit', '10')
    try:
        limit = int(raw_limit)
    except ValueError:
        raise InvalidInputError('limit must be an integer')
    limit = max(1, min(limit, MAX_LIST_LIMIT))

    jobs = [summary.to_dict() for summary in _supervisor().recent(limit)]
    return jsonify({'jobs': jobs, 'count': len(jobs)})


@bp.route('/validate-url', methods=['POST'])
def validate_url():
    """Check a YouTube URL's format and, with ``checkAvailability``, that it resolves."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    url = (data.get('url') or '').strip()
    if not url:
        raise InvalidInputError('URL is required')

    if not is_valid_youtube_url(url):
        return jsonify({'valid': False, 'message': 'Invalid YouTube URL format'})

    if not _is_truthy(data.get('checkAvailability', False)):
        return jsonify({'valid': True, 'message': 'Valid YouTube URL'})

    available = current_app.extensions['video_processor'].check_video_availability(url)
    return jsonify({
        'valid': available,
        'available': available,
        'message': 'Video is available' if available else 'Video is unavailable or restricted',
    })
