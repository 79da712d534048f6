"""HTTP routes: NDJSON progress streaming, cancellation, download and config."""

import json
import logging
import os
import queue
import threading
import time
import uuid

from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.utils import secure_filename

from subtleai.audio_extractor import is_supported_media
from subtleai.config_loader import get_api_key
from subtleai.exceptions import InputError, SubtleAIError, UnsupportedFormatError
from subtleai.job_store import is_valid_job_id
from subtleai.languages import SUPPORTED_LANGUAGES
from subtleai.progress import ProgressEvent, QueueSink, Step

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

# Cancel signals of runs in flight: job_id -> Event
_active_runs: dict = {}
_active_lock = threading.Lock()

NDJSON = "application/x-ndjson"


def _ndjson(events) -> Response:
    def generate():
        for event in events:
            yield json.dumps(event.to_dict()) + "\n"
    return Response(generate(), mimetype=NDJSON, headers={"Cache-Control": "no-cache"})


def _error_stream(message: str) -> Response:
    return _ndjson([ProgressEvent.failure(message)])


def _validate_request(upload, job_id: str) -> None:
    if upload is None or not upload.filename:
        raise InputError("No audio file provided")
    if not is_supported_media(upload.filename, upload.mimetype):
        raise UnsupportedFormatError(
            f"Unsupported file type: {upload.mimetype}. Supported: mp3, wav, m4a, webm, mp4, mkv."
        )
    if not is_valid_job_id(job_id):
        raise InputError("Invalid job ID")


@bp.route("/api/transcribe", methods=["POST"])
def transcribe():
    config = current_app.config["SUBTLEAI"]
    factory = current_app.config["GENERATOR_FACTORY"]
    store = current_app.config["JOB_STORE"]

    upload = request.files.get("audio")
    job_id = request.form.get("jobId") or str(uuid.uuid4())
    try:
        _validate_request(upload, job_id)
    except InputError as e:
        logger.warning(f"Rejected upload: {e}")
        return _error_stream(str(e))

    source_language = request.form.get("sourceLanguage") or "auto"
    output_language = request.form.get("outputLanguage") or None
    api_key = get_api_key(config, request.form.get("groqApiKey"))

    safe_name = secure_filename(upload.filename) or "upload"
    upload_path = os.path.join(config["upload_dir"], f"{int(time.time() * 1000)}-{safe_name}")
    try:
        upload.save(upload_path)
    except OSError as e:
        logger.error(f"Could not store upload {upload_path}: {e}")
        return _error_stream("Could not store the uploaded file")

    try:
        generator = factory(config, api_key, store)
    except SubtleAIError as e:
        try:
            os.remove(upload_path)
        except OSError as cleanup_error:
            logger.warning(f"Could not remove upload {upload_path}: {cleanup_error}")
        return _error_stream(str(e))

    events: queue.Queue = queue.Queue()
    sink = QueueSink(events)
    cancel_event = threading.Event()
    with _active_lock:
        _active_runs[job_id] = cancel_event

    sink.emit(ProgressEvent.progress(Step.UPLOADING, "Upload complete", upload_percent=100))
    original_filename = upload.filename

    def run():
        try:
            generator.generate(
                upload_path,
                source_language=source_language,
                output_language=output_language,
                sink=sink,
                cancel_event=cancel_event,
                job_id=job_id,
                original_filename=original_filename,
                cleanup_input=True,
            )
        finally:
            with _active_lock:
                _active_runs.pop(job_id, None)
            sink.close()

    threading.Thread(target=run, name=f"subtleai-run-{job_id[:8]}", daemon=True).start()

    def stream():
        try:
            while True:
                event = events.get()
                if event is None:
                    break
                yield json.dumps(event.to_dict()) + "\n"
        finally:
            # Reached early only when the client disconnects mid-stream.
            cancel_event.set()

    return Response(stream(), mimetype=NDJSON, headers={"Cache-Control": "no-cache"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel_job(job_id: str):
    with _active_lock:
        cancel_event = _active_runs.get(job_id)
    if cancel_event is None:
        return jsonify({"error": "Job not found or already finished"}), 404
    cancel_event.set()
    logger.info(f"Cancellation requested for job {job_id}")
    return jsonify({"status": "cancelling"})


@bp.route("/api/download/<job_id>")
def download(job_id: str):
    if not is_valid_job_id(job_id):
        return jsonify({"error": "Invalid job ID"}), 400

    store = current_app.config["JOB_STORE"]
    srt_content = store.get_srt(job_id)
    if not srt_content:
        return jsonify({"error": "File not found or expired. Please regenerate."}), 404

    filename = store.download_filename(job_id)
    return Response(
        srt_content,
        mimetype="text/plain",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@bp.route("/api/config")
def server_config():
    config = current_app.config["SUBTLEAI"]
    return jsonify({
        "hasGroqApiKey": bool(get_api_key(config)),
        "languages": SUPPORTED_LANGUAGES,
    })
