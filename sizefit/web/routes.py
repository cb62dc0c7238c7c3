"""Web UI routes for SizeFit."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    render_template,
    request,
    send_file,
)

from sizefit import ffutil
from sizefit.engine import convert_file
from sizefit.manifest import parse_markers, parse_size
from sizefit.models import ProgressEvent

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__, template_folder="templates")

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


@bp.route("/")
def index():
    return render_template("index.html")


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _jobs[job_id] = {
        "dir": job_dir,
        "input_path": input_path,
        "filename": f.filename,
        "status": "uploaded",
    }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/convert", methods=["POST"])
def start_convert(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] not in ("uploaded", "done", "error"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    config = request.get_json(silent=True) or {}
    try:
        target_bytes = parse_size(config["target_bytes"])
        kind = str(config["kind"])
        markers = parse_markers(config.get("markers") or [])
        trim_start = config.get("trim_start")
        trim_duration = config.get("trim_duration")
        trim_start = float(trim_start) if trim_start is not None else None
        trim_duration = float(trim_duration) if trim_duration is not None else None
    except KeyError as e:
        return jsonify({"error": f"Missing field: {e.args[0]}"}), 400
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    output_name = config.get("output_name") or "output"
    settings = current_app.config["SETTINGS"]

    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = "processing"
    job["error"] = None

    def on_progress(event: ProgressEvent) -> None:
        progress_queue.put(event.to_dict())

    def run():
        try:
            result = convert_file(
                job_id,
                job["input_path"],
                output_name,
                target_bytes,
                kind,
                trim_start=trim_start,
                trim_duration=trim_duration,
                markers=markers,
                settings=settings,
                on_progress=on_progress,
            )
            job["result"] = result.to_dict()
            if result.success:
                job["status"] = "done"
            else:
                job["status"] = "error"
                job["error"] = result.error
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    q = job.get("progress_queue")

    if q is None:
        return jsonify({"error": "No conversion in progress"}), 409

    def generate():
        while True:
            msg = q.get()
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"id": job_id, "error": job["error"]})
                else:
                    data = json.dumps({
                        "id": job_id,
                        "status": "completed",
                        "progress": 100.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409

    output_path = Path(job["result"]["outputPath"])
    return send_file(output_path, as_attachment=True)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "filename": job.get("filename")}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)


@bp.route("/api/probe", methods=["POST"])
def probe_media():
    body = request.get_json(silent=True) or {}
    if "path" not in body:
        return jsonify({"error": "Missing field: path"}), 400

    settings = current_app.config["SETTINGS"]
    try:
        meta = ffutil.probe_metadata(Path(body["path"]), settings.ffprobe)
    except (ffutil.ProbeError, ffutil.FFmpegNotFoundError) as e:
        return jsonify({"error": str(e)}), 422

    return jsonify({
        "duration": meta.duration,
        "width": meta.width,
        "height": meta.height,
        "fps": meta.fps,
        "codecVideo": meta.codec_video,
        "codecAudio": meta.codec_audio,
        "bitrate": meta.bitrate,
        "format": meta.format_name,
        "size": meta.size,
    })
