import logging
from datetime import datetime

from flask import Flask, jsonify, request

from heat_ingest.analyzer import summarize
from heat_ingest.annotation import (
    AnnotationError,
    SubmissionError,
    SubmissionNotFoundError,
    replay_markers,
)
from heat_ingest.colors import (
    COMFORT_STYLES,
    get_scale,
    temperature_stats,
)
from heat_ingest.config import configure_logging, load_config
from heat_ingest.db_writer import DBWriter
from heat_ingest.parsers.positional_parser import parse_positional_csv
from heat_ingest.parsers.visualization_parser import parse_for_visualization
from heat_ingest.service_logic import submit_csv, submit_image, tag_stories
from heat_ingest.session import SubmissionSession
from heat_ingest.storage import get_storage_backend

logger = logging.getLogger(__name__)

app = Flask(__name__)
CONFIG = load_config()

MAX_CSV_BYTES = 20 * 1024 * 1024
ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
TRUTHY = {"1", "true", "yes", "on"}


# ==================== DEPENDENCIES ====================


def get_db_writer() -> DBWriter:
    """Create and connect a DBWriter for the current request."""
    db = DBWriter(
        CONFIG["database"]["url"],
        connect_timeout=CONFIG["database"].get("connect_timeout", 10),
    )
    db.connect()
    return db


_storage = None


def get_storage():
    global _storage
    if _storage is None:
        _storage = get_storage_backend(CONFIG.get("storage"))
    return _storage


def _close(db) -> None:
    if db is not None and hasattr(db, "close"):
        db.close()


# ==================== REQUEST HELPERS ====================


def _csv_from_request():
    """CSV text from a multipart `file`, a JSON `csv` field or the raw body."""
    if "file" in request.files:
        upload = request.files["file"]
        data = upload.read(MAX_CSV_BYTES + 1)
        if len(data) > MAX_CSV_BYTES:
            raise ValueError("File size exceeds 20 MB limit")
        return data.decode("utf-8-sig", errors="replace"), upload.filename
    if request.is_json:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValueError("JSON body must be an object")
        text = payload.get("csv") or ""
        if not isinstance(text, str):
            raise ValueError("csv must be a string")
        return text, payload.get("file_name")
    return request.get_data(as_text=True), None


def _form_value(name: str):
    if request.is_json:
        return (request.get_json(silent=True) or {}).get(name)
    return request.form.get(name)


def _error(message: str, status: int):
    return jsonify({"error": message}), status


# ==================== CSV ROUTES ====================


@app.route("/api/csv/validate", methods=["POST"])
def validate_csv():
    """Analyze an upload without storing anything."""
    try:
        text, _ = _csv_from_request()
    except ValueError as e:
        return _error(str(e), 400)
    if not text.strip():
        return _error("No CSV data provided", 400)

    preview_limit = CONFIG["visualization"].get("preview_rows", 5)
    summary = summarize(parse_positional_csv(text), preview_limit)
    return jsonify(summary.to_dict()), 200


@app.route("/api/csv/submit", methods=["POST"])
def submit_csv_route():
    try:
        text, file_name = _csv_from_request()
    except ValueError as e:
        return _error(str(e), 400)
    if not text.strip():
        return _error("No CSV data provided", 400)

    session = SubmissionSession(
        name=_form_value("name"),
        email=_form_value("email"),
        area_of_interest=_form_value("area_of_interest"),
        mode_of_transport=_form_value("mode_of_transport"),
        file_name=file_name,
    )
    submit_anyway = str(_form_value("submit_anyway") or "").lower() in TRUTHY

    db = None
    try:
        db = get_db_writer()
        result = submit_csv(
            session,
            text,
            get_storage(),
            db,
            submit_anyway=submit_anyway,
            preview_limit=CONFIG["visualization"].get("preview_rows", 5),
        )
    except Exception:
        logger.exception("CSV submission failed")
        return _error("Failed to store submission", 500)
    finally:
        _close(db)

    return jsonify(result.to_dict()), (201 if result.accepted else 422)


@app.route("/api/csv/points", methods=["POST"])
def csv_points():
    """Drawable points of an upload with their scale colors and stats."""
    try:
        text, _ = _csv_from_request()
        scale = get_scale(
            request.args.get("scale") or CONFIG["visualization"].get("scale", "fine")
        )
    except ValueError as e:
        return _error(str(e), 400)

    points = parse_for_visualization(text)
    features = []
    for point in points:
        item = point.to_dict()
        item["color"] = scale.color_for(point.probe_temp)
        features.append(item)

    return (
        jsonify(
            {
                "scale": scale.name,
                "points": features,
                "stats": temperature_stats(points).to_dict(),
            }
        ),
        200,
    )


@app.route("/api/submissions/<int:submission_id>/annotations", methods=["POST"])
def annotate_submission(submission_id):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return _error("JSON body must be an object", 400)
    markers = payload.get("markers") or []
    if not isinstance(markers, list):
        return _error("markers must be a list", 400)

    session = SubmissionSession(submission_id=submission_id)
    try:
        wizard = replay_markers(session, markers, payload.get("significance") or "")
    except AnnotationError as e:
        return _error(str(e), 400)

    db = None
    try:
        db = get_db_writer()
        result = wizard.submit(db)
    except AnnotationError as e:
        return _error(str(e), 400)
    except SubmissionNotFoundError as e:
        return _error(str(e), 404)
    except SubmissionError as e:
        return _error(str(e), 502)
    except Exception:
        logger.exception("Could not reach the database")
        return _error("Failed to store annotations", 500)
    finally:
        _close(db)

    return jsonify({"success": True, "submissionId": submission_id, **result}), 200


# ==================== IMAGE ROUTES ====================


@app.route("/api/image-submissions", methods=["POST"])
def create_image_submission():
    if "image" not in request.files:
        return _error("No image provided", 400)
    image = request.files["image"]
    extension = (image.filename or "").rsplit(".", 1)[-1].lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        return _error(
            f"File type not allowed. Allowed: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}",
            400,
        )

    tags = [t.strip() for t in (request.form.get("tags") or "").split(",") if t.strip()]
    created_at = None
    if request.form.get("created_at"):
        try:
            created_at = datetime.fromisoformat(request.form["created_at"])
        except ValueError:
            return _error("created_at must be an ISO 8601 timestamp", 400)

    db = None
    try:
        lat = float(request.form.get("lat", ""))
        lng = float(request.form.get("lng", ""))
        db = get_db_writer()
        submission_id = submit_image(
            image.read(),
            request.form.get("comfort_level", ""),
            lat,
            lng,
            get_storage(),
            db,
            created_at=created_at,
            comment=request.form.get("comment"),
            tags=tags,
            extension=extension,
        )
    except ValueError as e:
        return _error(str(e), 400)
    except Exception:
        logger.exception("Image submission failed")
        return _error("Failed to store image submission", 500)
    finally:
        _close(db)

    return jsonify({"success": True, "submissionId": submission_id}), 201


@app.route("/api/tag-stories")
def get_tag_stories():
    expires_in = CONFIG["storage"].get("signed_url_expiry_seconds", 3600)
    db = None
    try:
        db = get_db_writer()
        stories = tag_stories(db, get_storage(), expires_in)
    except Exception:
        logger.exception("Failed to load tag stories")
        return _error("Failed to load tag stories", 500)
    finally:
        _close(db)
    return jsonify([s.to_dict() for s in stories]), 200


@app.route("/api/comfort-levels")
def get_comfort_levels():
    return jsonify(
        [
            {"level": level.value, **style.to_dict()}
            for level, style in COMFORT_STYLES.items()
        ]
    )


@app.route("/health")
def health():
    return jsonify({"status": "ok"})


# ==================== ERROR HANDLERS ====================


@app.errorhandler(404)
def not_found(error):
    return _error("Not found", 404)


@app.errorhandler(405)
def method_not_allowed(error):
    return _error("Method not allowed", 405)


@app.errorhandler(500)
def server_error(error):
    return _error("Internal server error", 500)


# ==================== START SERVER ====================

if __name__ == "__main__":
    configure_logging(CONFIG)
    app.run(host="0.0.0.0", port=5000)
