"""Web API routes for camreplay."""

import json
import logging
import queue
import subprocess
import threading
import uuid
from datetime import datetime

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from camreplay.assembler import AssemblyCancelledError, AssemblyError
from camreplay.models import RangeNotFoundError, Segment, TimeRange

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}
_jobs_lock = threading.Lock()


def _engine():
    return current_app.extensions["camreplay"]


def _segment_json(seg: Segment) -> dict:
    return {
        "name": seg.name,
        "start_time": seg.start_time.isoformat(),
    }


def _parse_time(value) -> datetime:
    if not isinstance(value, str):
        raise ValueError("times must be ISO 8601 strings")
    when = datetime.fromisoformat(value)
    if when.tzinfo is not None:
        # Segment names carry the recorder's local wall-clock time.
        when = when.astimezone().replace(tzinfo=None)
    return when


@bp.route("/api/segments")
def list_segments():
    return jsonify({"segments": [_segment_json(s) for s in _engine().segments()]})


@bp.route("/api/live")
def live_segment():
    # NoLiveCandidateError is turned into a 404 by the app's error handler.
    seg = _engine().live_segment()
    return jsonify(_segment_json(seg))


@bp.route("/api/clips", methods=["POST"])
def start_clip():
    body = request.get_json(silent=True) or {}
    if "start" not in body or "end" not in body:
        return jsonify({"error": "Body must contain 'start' and 'end'"}), 400
    try:
        time_range = TimeRange(_parse_time(body["start"]), _parse_time(body["end"]))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    engine = _engine()
    job_id = uuid.uuid4().hex[:12]
    progress_queue: queue.Queue = queue.Queue()
    job = {
        "status": "processing",
        "range": [time_range.start.isoformat(), time_range.end.isoformat()],
        "progress_queue": progress_queue,
        "error": None,
        "clip": None,
    }
    with _jobs_lock:
        _jobs[job_id] = job

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            result = engine.request_clip(time_range, on_progress=on_progress)
            job["clip"] = result.clip
            job["result"] = {
                "segments": [p.segment.name for p in result.parts],
                "duration": result.clip.duration,
                "expected_duration": result.expected_duration,
            }
            job["status"] = "done"
        except AssemblyCancelledError:
            job["status"] = "cancelled"
            job["error"] = "Superseded by a newer clip request"
        except RangeNotFoundError as e:
            job["status"] = "error"
            job["error"] = str(e)
            job["boundary"] = e.boundary
        except AssemblyError as e:
            job["status"] = "error"
            job["error"] = str(e)
            job["stage"] = e.stage
        except subprocess.CalledProcessError as e:
            job["status"] = "error"
            stderr = e.stderr if isinstance(e.stderr, str) else (e.stderr or b"").decode(errors="replace")
            job["error"] = f"ffmpeg failed: {stderr[-500:]}" if stderr else str(e)
        except Exception as e:
            logger.exception("clip job %s failed", job_id)
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"job_id": job_id, "status": "started"}), 202


@bp.route("/api/clips/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    q = job["progress_queue"]

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "done":
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                else:
                    data = json.dumps({"status": job["status"], "error": job["error"]})
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/clips/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "range": job["range"]}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] in ("error", "cancelled"):
        resp["error"] = job.get("error")
        for key in ("boundary", "stage"):
            if key in job:
                resp[key] = job[key]
    return jsonify(resp)


@bp.route("/api/clips/<job_id>/result")
def download_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    return send_file(job["clip"].path, mimetype="video/mp4", as_attachment=False)


@bp.route("/api/clips/<job_id>", methods=["DELETE"])
def delete_clip(job_id: str):
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job is None:
            return jsonify({"error": "Job not found"}), 404
        if job["status"] == "processing":
            return jsonify({"error": "Job is still processing"}), 409
        del _jobs[job_id]

    # Clips belong to whoever requested them; deleting the job deletes the file.
    if job["clip"] is not None:
        job["clip"].discard()
    return jsonify({"deleted": job_id})
