# study_tools.py — page-level operations: collect input, call Gemini, persist the whole collection
import time, uuid, base64, binascii, logging
from datetime import date
from typing import List, Dict, Any, Optional, Tuple
from urllib.parse import quote

import gemini_core
from models import User, Feedback, Attachment, Message, PYQAnalysis, Routine, Review
from storage import LocalStore, USERS_KEY, REVIEWS_KEY, PYQ_KEY, ROUTINES_KEY, chat_key

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Input rejected before anything is sent or stored."""


class NotFoundError(LookupError):
    """A referenced record does not exist."""


def now_ms() -> int:
    return int(time.time() * 1000)


def today_str(d: Optional[date] = None) -> str:
    # Matches the browser's en-US toLocaleDateString(): no zero padding.
    d = d or date.today()
    return f"{d.month}/{d.day}/{d.year}"


# -------------------------
# Users (simulated sign-in)
# -------------------------
AVATAR_URL = "https://api.dicebear.com/7.x/notionists/svg?seed={seed}"
DEFAULT_GRADE = "Student"
DEFAULT_BIO = "Ready to achieve academic excellence."
EDITABLE_PROFILE_FIELDS = ("name", "grade", "goal", "bio")


def _load_users(shared: LocalStore) -> Dict[str, Dict[str, Any]]:
    return shared.get(USERS_KEY, {}) or {}


def get_user(shared: LocalStore, user_id: str) -> Optional[User]:
    rec = _load_users(shared).get(str(user_id))
    return User.from_dict(rec) if rec else None


def login(shared: LocalStore, email: str, name: str) -> User:
    """
    No password, no verification: the e-mail picks an existing account, otherwise a new one is made.
    """
    email = (email or "").strip()
    name = (name or "").strip()
    if not email or not name:
        raise ValidationError("Email and name are required")

    users = _load_users(shared)
    for rec in users.values():
        if rec.get("email", "").lower() == email.lower():
            logger.info("🔑 Existing user signed in: %s", rec.get("id"))
            return User.from_dict(rec)

    user_id = str(now_ms())
    while user_id in users:
        user_id = str(int(user_id) + 1)
    user = User(
        id=user_id,
        name=name,
        email=email,
        avatar=AVATAR_URL.format(seed=quote(name, safe="")),
        grade=DEFAULT_GRADE,
        bio=DEFAULT_BIO,
    )
    users[user.id] = user.to_dict()
    shared.set(USERS_KEY, users)
    logger.info("🆕 New user created: %s", user.id)
    return user


def update_profile(shared: LocalStore, user: User, fields: Dict[str, Any]) -> User:
    updated = User.from_dict(user.to_dict())
    for key in EDITABLE_PROFILE_FIELDS:
        if key in fields:
            value = fields[key]
            setattr(updated, key, value.strip() if isinstance(value, str) else value)
    if not updated.name:
        raise ValidationError("Name is required")

    users = _load_users(shared)
    users[updated.id] = updated.to_dict()
    shared.set(USERS_KEY, users)
    return updated


# -------------------------
# Chat surfaces
# -------------------------
MODES = ("tutor", "counsellor")
GREETINGS = {
    "tutor": ("Hello! I'm your AI Tutor. What topic would you like to learn about today? "
              "I can explain things from the basics. You can also upload images of questions."),
    "counsellor": ("Hi there, I'm Mira. I'm here to listen. How have you been feeling lately? "
                   "You can share anything with me."),
}
FALLBACK_REPLY = "I apologize, I'm having trouble connecting right now."
ALLOWED_MIME_PREFIXES = ("image/",)
ALLOWED_MIME_TYPES = ("application/pdf",)


def _check_mode(mode: str) -> None:
    if mode not in MODES:
        raise NotFoundError(f"Unknown chat mode: {mode}")


def check_attachment(att: Optional[Attachment]) -> None:
    if att is None:
        return
    mime = (att.mime_type or "").lower()
    if not (mime.startswith(ALLOWED_MIME_PREFIXES) or mime in ALLOWED_MIME_TYPES):
        raise ValidationError("Only images or PDF files can be attached")
    if not att.data:
        raise ValidationError("Attachment is empty")
    try:
        base64.b64decode(att.data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Attachment data must be base64 encoded")


def load_messages(store: LocalStore, mode: str) -> List[Message]:
    _check_mode(mode)
    saved = store.get(chat_key(mode))
    if saved is not None:
        return [Message.from_dict(m) for m in saved]
    return [Message(id="init", role="model", text=GREETINGS[mode], timestamp=now_ms())]


def save_messages(store: LocalStore, mode: str, messages: List[Message]) -> None:
    store.set(chat_key(mode), [m.to_dict() for m in messages])


def send_message(store: LocalStore, mode: str, text: str,
                 attachment: Optional[Attachment] = None) -> Tuple[Message, Message]:
    """
    Appends the user's message, asks the model with the recent history, appends the reply.
    If the model call fails the user's message stays stored and the error propagates.
    """
    _check_mode(mode)
    text = text or ""
    if not text.strip() and attachment is None:
        raise ValidationError("Message is empty")
    if attachment is not None and mode != "tutor":
        raise ValidationError("Attachments are only supported by the tutor")
    check_attachment(attachment)

    messages = load_messages(store, mode)
    history = gemini_core.format_history(messages)

    user_msg = Message(id=str(uuid.uuid4()), role="user", text=text, timestamp=now_ms(), attachment=attachment)
    messages.append(user_msg)
    save_messages(store, mode, messages)

    if mode == "tutor":
        reply = gemini_core.get_tutor_response(history, user_msg.text, user_msg.attachment)
    else:
        reply = gemini_core.get_counsellor_response(history, user_msg.text)

    bot_msg = Message(id=str(uuid.uuid4()), role="model", text=reply or FALLBACK_REPLY, timestamp=now_ms())
    messages.append(bot_msg)
    save_messages(store, mode, messages)
    return user_msg, bot_msg


def give_feedback(store: LocalStore, mode: str, message_id: str,
                  is_helpful: bool, comment: Optional[str] = None) -> Message:
    messages = load_messages(store, mode)
    for msg in messages:
        if msg.id == message_id:
            msg.feedback = Feedback(is_helpful=bool(is_helpful), comment=comment or None)
            save_messages(store, mode, messages)
            return msg
    raise NotFoundError(f"Message not found: {message_id}")


# -------------------------
# PYQ analyzer
# -------------------------
def pyq_history(store: LocalStore) -> List[PYQAnalysis]:
    return [PYQAnalysis.from_dict(a) for a in store.get(PYQ_KEY, []) or []]


def analyze_pyq(store: LocalStore, subject: str, text: str,
                attachment: Optional[Attachment] = None) -> PYQAnalysis:
    subject = (subject or "").strip()
    text = text or ""
    if not subject:
        raise ValidationError("Subject is required")
    if not text.strip() and attachment is None:
        raise ValidationError("Paste question text or upload a question paper")
    check_attachment(attachment)

    analysis = gemini_core.analyze_pyq(subject, text, attachment)
    history = store.get(PYQ_KEY, []) or []
    store.set(PYQ_KEY, [analysis.to_dict()] + history)
    logger.info("📚 PYQ analysis saved for '%s' (%d topics, %d questions)",
                subject, len(analysis.topics), len(analysis.predicted_questions))
    return analysis


# -------------------------
# Routine planner
# -------------------------
CATEGORY_STATS = (
    ("academic", "Academic", "#6366f1"),
    ("personal", "Personal", "#f59e0b"),
    ("health", "Health", "#10b981"),
)


def load_routines(store: LocalStore) -> List[Routine]:
    return [Routine.from_dict(r) for r in store.get(ROUTINES_KEY, []) or []]


def save_routines(store: LocalStore, routines: List[Routine]) -> None:
    store.set(ROUTINES_KEY, [r.to_dict() for r in routines])


def current_routine(store: LocalStore) -> Optional[Routine]:
    routines = load_routines(store)
    return routines[-1] if routines else None


def generate_routine(store: LocalStore, preferences: str) -> Routine:
    preferences = (preferences or "").strip()
    if not preferences:
        raise ValidationError("Describe your preferences and goals first")

    items = gemini_core.generate_routine(preferences)
    routine = Routine(id=str(uuid.uuid4()), date=today_str(), items=items)
    routines = load_routines(store)
    routines.append(routine)
    save_routines(store, routines)
    return routine


def toggle_item(store: LocalStore, routine_id: str, index: int) -> Routine:
    routines = load_routines(store)
    for routine in routines:
        if routine.id == routine_id:
            if not 0 <= index < len(routine.items):
                raise NotFoundError(f"No item {index} in routine {routine_id}")
            item = routine.items[index]
            item.completed = not item.completed
            save_routines(store, routines)
            return routine
    raise NotFoundError(f"Routine not found: {routine_id}")


def routine_stats(routine: Optional[Routine]) -> List[Dict[str, Any]]:
    if routine is None:
        return []
    counts = {key: 0 for key, _, _ in CATEGORY_STATS}
    for item in routine.items:
        if item.category in counts:
            counts[item.category] += 1
    return [{"name": name, "value": counts[key], "color": color} for key, name, color in CATEGORY_STATS]


# -------------------------
# Review board
# -------------------------
def list_reviews(shared: LocalStore) -> List[Review]:
    return [Review.from_dict(r) for r in shared.get(REVIEWS_KEY, []) or []]


def submit_review(shared: LocalStore, user: User, rating: Any = 5, comment: str = "") -> Review:
    comment = (comment or "").strip()
    if not comment:
        raise ValidationError("Comment is required")
    if rating is None:
        rating = 5
    if isinstance(rating, bool) or (isinstance(rating, float) and not rating.is_integer()):
        raise ValidationError("Rating must be a whole number from 1 to 5")
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a whole number from 1 to 5")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be a whole number from 1 to 5")

    review = Review(
        id=str(uuid.uuid4()),
        user_name=user.name,
        user_avatar=user.avatar,
        rating=rating,
        comment=comment,
        date=today_str(),
    )
    shared.set(REVIEWS_KEY, [review.to_dict()] + (shared.get(REVIEWS_KEY, []) or []))
    return review


# -------------------------
# Dashboard
# -------------------------
FEATURES = [
    {"title": "Exam Predictor", "desc": "Upload PYQs to find high-yield questions.", "path": "/pyq-analyzer"},
    {"title": "AI Tutor", "desc": "Learn new topics from scratch.", "path": "/tutor"},
    {"title": "Counsellor", "desc": "Share your feelings safely.", "path": "/counsellor"},
    {"title": "Routine Planner", "desc": "Organize your life and study.", "path": "/routine"},
]
DASHBOARD_ROUTINE_ITEMS = 3


def dashboard(store: LocalStore) -> Dict[str, Any]:
    routine = current_routine(store)
    items = routine.items[:DASHBOARD_ROUTINE_ITEMS] if routine else []
    return {
        "features": FEATURES,
        "today_routine": [i.to_dict() for i in items],
    }


# -------------------------
# Demo data
# -------------------------
def seed_demo(shared: LocalStore, demo: Optional[Dict[str, Any]] = None) -> int:
    """Loads the demo reviews into an empty board. Returns how many were added."""
    if demo is None:
        from mock_db import DB as demo
    if shared.get(REVIEWS_KEY):
        return 0
    reviews = [Review.from_dict(r).to_dict() for r in demo.get("reviews", [])]
    shared.set(REVIEWS_KEY, reviews)
    return len(reviews)
