import os
import base64
import logging
from functools import wraps

from flask import Flask, request, jsonify, session, g, current_app
from dotenv import load_dotenv

load_dotenv()

import study_tools
from gemini_core import GenerationError
from log_config import setup_logger
from models import Attachment, LoadingState
from storage import shared_store, user_store
from study_tools import ValidationError, NotFoundError

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["DATA_DIR"] = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))
app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024  # 25MB uploads
app.secret_key = os.getenv("FLASK_SECRET_KEY", os.urandom(16))


def configure_logging():
    """Installs the console/file handlers unless the host process already configured logging."""
    if logging.getLogger().handlers:
        return False
    setup_logger(os.getenv("LOG_FILE", "logs/scholar.log") or None)
    return True


# Runs on import so `flask run` and WSGI servers log too.
configure_logging()


# -------------------------
# Helpers
# -------------------------
def ok(code=200, **payload):
    return jsonify({"ok": True, **payload}), code


def fail(error, status):
    return jsonify({"ok": False, "error": error}), status


def _shared():
    return shared_store(current_app.config["DATA_DIR"])


def _store():
    return user_store(current_app.config["DATA_DIR"], g.user.id)


def _payload():
    """Form fields for multipart uploads, JSON body otherwise."""
    if request.files or request.form:
        return request.form.to_dict()
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _text(data, key, default=""):
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value


def _attachment(data):
    upload = request.files.get("file")
    if upload and upload.filename:
        raw = upload.read()
        if not raw:
            raise ValidationError("Attachment is empty")
        return Attachment(
            name=upload.filename,
            mime_type=upload.mimetype or "application/octet-stream",
            data=base64.b64encode(raw).decode("ascii"),
        )
    att = data.get("attachment")
    if not att:
        return None
    if not isinstance(att, dict):
        raise ValidationError("Attachment must be an object with name, mime_type and data")
    return Attachment.from_dict(att)


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        user_id = session.get("user_id")
        user = study_tools.get_user(_shared(), user_id) if user_id else None
        if user is None:
            session.pop("user_id", None)
            return fail("Please sign in first", 401)
        g.user = user
        return view(*args, **kwargs)
    return wrapped


@app.errorhandler(ValidationError)
def handle_validation(e):
    return fail(str(e), 400)


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    return fail(str(e), 404)


@app.errorhandler(404)
def handle_404(e):
    return fail("Not found", 404)


@app.errorhandler(405)
def handle_405(e):
    return fail("Method not allowed", 405)


@app.errorhandler(413)
def handle_too_large(e):
    return fail("File too large", 413)


# -------------------------
# Session
# -------------------------
@app.get("/")
def home():
    return "✅ CogniPath Scholar API is running."


@app.post("/api/login")
def login():
    data = _payload()
    user = study_tools.login(_shared(), _text(data, "email"), _text(data, "name"))
    session["user_id"] = user.id
    return ok(user=user.to_dict())


@app.post("/api/logout")
def logout():
    session.pop("user_id", None)
    return ok()


@app.get("/api/me")
@login_required
def me():
    return ok(user=g.user.to_dict())


# -------------------------
# Profile
# -------------------------
@app.get("/api/profile")
@login_required
def get_profile():
    return ok(user=g.user.to_dict())


@app.route("/api/profile", methods=["PUT", "POST"])
@login_required
def update_profile():
    data = _payload()
    fields = {k: _text(data, k) for k in study_tools.EDITABLE_PROFILE_FIELDS if k in data}
    user = study_tools.update_profile(_shared(), g.user, fields)
    return ok(user=user.to_dict())


# -------------------------
# Dashboard
# -------------------------
@app.get("/api/dashboard")
@login_required
def dashboard():
    return ok(**study_tools.dashboard(_store()))


# -------------------------
# Chat (tutor / counsellor)
# -------------------------
@app.get("/api/chat/<mode>")
@login_required
def chat_history(mode):
    messages = study_tools.load_messages(_store(), mode)
    return ok(mode=mode, messages=[m.to_dict() for m in messages])


@app.post("/api/chat/<mode>")
@login_required
def chat_send(mode):
    data = _payload()
    text = _text(data, "text")
    logger.info("📩 Chat message for %s from user %s (%d chars)", mode, g.user.id, len(text or ""))
    try:
        user_msg, bot_msg = study_tools.send_message(_store(), mode, text, _attachment(data))
    except GenerationError:
        logger.exception("🔥 Chat request failed (%s)", mode)
        return fail("Something went wrong. Please try again.", 500)
    return ok(message=user_msg.to_dict(), reply=bot_msg.to_dict())


@app.post("/api/chat/<mode>/messages/<message_id>/feedback")
@login_required
def chat_feedback(mode, message_id):
    data = _payload()
    if "is_helpful" not in data:
        raise ValidationError("is_helpful is required")
    helpful = data["is_helpful"]
    if isinstance(helpful, str):
        helpful = helpful.strip().lower() in ("1", "true", "yes")
    msg = study_tools.give_feedback(_store(), mode, message_id, helpful, _text(data, "comment", None))
    return ok(message=msg.to_dict())


# -------------------------
# PYQ analyzer
# -------------------------
@app.get("/api/pyq")
@login_required
def pyq_history():
    return ok(history=[a.to_dict() for a in study_tools.pyq_history(_store())])


@app.post("/api/pyq")
@login_required
def pyq_analyze():
    data = _payload()
    attachment = _attachment(data)
    logger.info("📄 PYQ analysis requested: subject=%r, attachment=%s",
                data.get("subject"), attachment.name if attachment else None)
    try:
        analysis = study_tools.analyze_pyq(_store(), _text(data, "subject"), _text(data, "text"), attachment)
    except GenerationError:
        logger.exception("🔥 PYQ analysis failed")
        return jsonify({"ok": False, "status": LoadingState.ERROR.value,
                        "error": "Failed to analyze. Please try again."}), 500
    return ok(status=LoadingState.SUCCESS.value, analysis=analysis.to_dict())


# -------------------------
# Routine planner
# -------------------------
@app.get("/api/routines")
@login_required
def routines():
    store = _store()
    items = study_tools.load_routines(store)
    current = items[-1] if items else None
    return ok(
        routines=[r.to_dict() for r in items],
        current=current.to_dict() if current else None,
        stats=study_tools.routine_stats(current),
    )


@app.post("/api/routines")
@login_required
def routine_generate():
    data = _payload()
    try:
        routine = study_tools.generate_routine(_store(), _text(data, "preferences"))
    except GenerationError:
        logger.exception("🔥 Routine generation failed")
        return jsonify({"ok": False, "status": LoadingState.ERROR.value,
                        "error": "Failed to generate a routine. Please try again."}), 500
    return ok(status=LoadingState.SUCCESS.value, routine=routine.to_dict(),
              stats=study_tools.routine_stats(routine))


@app.post("/api/routines/<routine_id>/items/<int:index>/toggle")
@login_required
def routine_toggle(routine_id, index):
    routine = study_tools.toggle_item(_store(), routine_id, index)
    return ok(routine=routine.to_dict(), stats=study_tools.routine_stats(routine))


# -------------------------
# Reviews
# -------------------------
@app.get("/api/reviews")
@login_required
def reviews():
    return ok(reviews=[r.to_dict() for r in study_tools.list_reviews(_shared())])


@app.post("/api/reviews")
@login_required
def review_submit():
    data = _payload()
    review = study_tools.submit_review(_shared(), g.user, data.get("rating", 5), _text(data, "comment"))
    return ok(201, review=review.to_dict())


if __name__ == "__main__":
    if os.getenv("SEED_DEMO", "0") == "1":
        added = study_tools.seed_demo(shared_store(app.config["DATA_DIR"]))
        logger.info("🌱 Seeded %d demo reviews", added)
    port = int(os.getenv("PORT", "5004"))
    logger.info("🚀 CogniPath Scholar API running on port %d", port)
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG", "0") == "1")
