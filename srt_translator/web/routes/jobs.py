"""Translation queue API routes."""

from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, Response, current_app, jsonify, request

from srt_translator.ai.exceptions import MissingCredentialError
from srt_translator.config import get_default_model, load_config
from srt_translator.jobs.scheduler import JobBusyError, JobNotFoundError, LineNotFoundError
from srt_translator.logger import get_logger
from srt_translator.subtitles.models import SourceDocument
from srt_translator.subtitles.srt import output_filename, render_srt

jobs_bp = Blueprint("jobs", __name__)
logger = get_logger(__name__)

MAX_DOCUMENTS_PER_REQUEST = 100


def _runtime():
    return current_app.extensions["queue_runtime"]


def _manager():
    return _runtime().manager


def _error(message: str, status: int, code: str = None):
    payload = {"error": message}
    if code:
        payload["code"] = code
    return jsonify(payload), status


def _documents_from_request() -> List[SourceDocument]:
    """Collect documents from multipart uploads or a JSON body."""
    documents: List[SourceDocument] = []

    for upload in request.files.getlist("files"):
        if upload and upload.filename:
            documents.append(SourceDocument(name=upload.filename, content=upload.read()))

    data: Dict[str, Any] = request.get_json(silent=True) or {}
    for entry in data.get("documents") or []:
        if not isinstance(entry, dict):
            raise ValueError("Each document must be an object with name and content")
        name = entry.get("name")
        content = entry.get("content")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Document name is required")
        if not isinstance(content, str):
            raise ValueError(f"Document {name!r} content must be a string")
        documents.append(SourceDocument(name=name.strip(), content=content))

    return documents


def _request_value(key: str, default: str) -> str:
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    value = data.get(key) or request.form.get(key) or default
    return str(value).strip() or default


@jobs_bp.post("/")
def submit_jobs():
    """Queue one or more SRT documents for translation."""
    try:
        documents = _documents_from_request()
    except ValueError as e:
        return _error(str(e), 400, "invalid_documents")

    if not documents:
        return _error("No documents provided", 400, "invalid_documents")
    if len(documents) > MAX_DOCUMENTS_PER_REQUEST:
        return _error(f"At most {MAX_DOCUMENTS_PER_REQUEST} documents per request", 400, "too_many_documents")

    config = load_config()
    target_language = _request_value("target_language", config.get("target_language"))
    model = _request_value("model", get_default_model(config))

    try:
        job_ids = _runtime().call(_manager().submit, documents, target_language, model)
    except MissingCredentialError as e:
        logger.warning("Submission rejected: %s", e)
        return _error(str(e), 400, e.code)

    logger.info("Queued %s job(s) for %s", len(job_ids), target_language)
    return jsonify({"job_ids": job_ids}), 202


@jobs_bp.get("/")
def list_jobs():
    """Return all jobs and the overall queue progress."""
    manager = _manager()

    def snapshot():
        # One loop tick so the counts agree with the job list
        return manager.jobs(), sorted(manager.active_ids), manager.overall_progress(), manager.stopped

    jobs, active, overall, stopped = _runtime().call(snapshot)
    completed = sum(1 for job in jobs if job.status.value == "COMPLETED")
    return jsonify({
        "jobs": [job.to_dict() for job in jobs],
        "active_job_ids": active,
        "completed_count": completed,
        "total_count": len(jobs),
        "overall_progress": round(overall, 2),
        "stopped": stopped,
    })


@jobs_bp.get("/<job_id>")
def get_job(job_id: str):
    """Return one job including its lines and latest batch progress."""
    manager = _manager()
    job, batch = _runtime().call(lambda: (manager.get(job_id), manager.batch_progress(job_id)))
    if job is None:
        return _error(f"Job {job_id} not found", 404, "job_not_found")
    payload = job.to_dict(include_lines=True)
    payload["batch"] = batch.to_dict() if batch else None
    return jsonify(payload)


@jobs_bp.delete("/<job_id>")
def remove_job(job_id: str):
    """Remove a job, stopping it first if it is running."""
    try:
        _runtime().call(_manager().remove, job_id)
    except JobNotFoundError as e:
        return _error(str(e), 404, e.code)
    return jsonify({"removed": job_id})


@jobs_bp.post("/stop")
def stop_queue():
    """Stop every queued or running job."""
    stopped = _runtime().call(_manager().stop_all)
    return jsonify({"stopped": stopped})


@jobs_bp.post("/clear-completed")
def clear_completed():
    """Remove all completed jobs from the list."""
    removed = _runtime().call(_manager().clear_completed)
    return jsonify({"removed": removed})


@jobs_bp.patch("/<job_id>/lines/<int:line_id>")
def update_line(job_id: str, line_id: int):
    """Manually edit the translated text of one subtitle line."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    text = data.get("text")
    if not isinstance(text, str):
        return _error("Field 'text' must be a string", 400, "invalid_text")

    try:
        job = _runtime().call(_manager().update_line, job_id, line_id, text)
    except JobNotFoundError as e:
        return _error(str(e), 404, e.code)
    except LineNotFoundError as e:
        return _error(str(e), 404, e.code)
    except JobBusyError as e:
        return _error(str(e), 409, e.code)

    return jsonify(job.to_dict(include_lines=True))


@jobs_bp.get("/<job_id>/download")
def download_job(job_id: str):
    """Download the rendered SRT of a job (translated text where available)."""
    job = _runtime().call(_manager().get, job_id)
    if job is None:
        return _error(f"Job {job_id} not found", 404, "job_not_found")
    if not job.lines:
        return _error("Job has no parsed subtitles yet", 409, "job_not_parsed")

    suffix = request.args.get("suffix") or job.target_language
    filename = output_filename(job.display_name, suffix)
    return Response(
        render_srt(job.lines),
        mimetype="application/x-subrip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@jobs_bp.get("/logs")
def get_logs():
    """Return the status log, oldest entry first."""
    log = _manager().status_log
    entries, has_alerts = _runtime().call(lambda: (log.entries(), log.has_alerts()))
    return jsonify({"entries": entries, "has_alerts": has_alerts})


@jobs_bp.delete("/logs")
def clear_logs():
    """Clear the status log."""
    _runtime().call(_manager().status_log.clear)
    return jsonify({"cleared": True})
