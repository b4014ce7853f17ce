import base64
import json

import pytest

import study_tools
from gemini_core import GenerationError
from models import Attachment, User
from study_tools import ValidationError, NotFoundError
from storage import USERS_KEY, REVIEWS_KEY, PYQ_KEY, ROUTINES_KEY, chat_key

PDF = Attachment(name="paper.pdf", mime_type="application/pdf", data=base64.b64encode(b"%PDF-1.4").decode())

ROUTINE_JSON = json.dumps([
    {"time": "07:00 AM - 07:30 AM", "activity": "Jog", "category": "health", "completed": False},
    {"time": "08:00 AM - 10:00 AM", "activity": "Calculus practice", "category": "academic", "completed": False},
    {"time": "10:00 AM - 10:30 AM", "activity": "Call a friend", "category": "personal", "completed": False},
    {"time": "11:00 AM - 12:00 PM", "activity": "Chemistry notes", "category": "academic", "completed": False},
])


@pytest.fixture
def user(shared):
    return study_tools.login(shared, "ada@example.com", "Ada Lovelace")


# -------------------------
# Users
# -------------------------
def test_login_creates_user_with_defaults(shared, user):
    assert user.id.isdigit()
    assert user.avatar == "https://api.dicebear.com/7.x/notionists/svg?seed=Ada%20Lovelace"
    assert user.grade == "Student"
    assert user.bio == "Ready to achieve academic excellence."
    assert shared.get(USERS_KEY)[user.id]["email"] == "ada@example.com"


def test_login_reuses_account_by_email(shared, user):
    again = study_tools.login(shared, "ADA@example.com", "Someone Else")
    assert again.id == user.id
    assert again.name == "Ada Lovelace"


@pytest.mark.parametrize("email,name", [("", "Ada"), ("ada@example.com", "  ")])
def test_login_requires_email_and_name(shared, email, name):
    with pytest.raises(ValidationError):
        study_tools.login(shared, email, name)


def test_update_profile_only_touches_editable_fields(shared, user):
    updated = study_tools.update_profile(shared, user, {
        "name": "Ada L.", "grade": "12th Grade", "goal": "Score 95% in Finals",
        "email": "hacker@example.com", "id": "1", "avatar": "x",
    })
    assert updated.name == "Ada L."
    assert updated.goal == "Score 95% in Finals"
    assert updated.email == "ada@example.com"
    assert updated.avatar == user.avatar
    assert study_tools.get_user(shared, user.id) == updated


def test_update_profile_requires_name(shared, user):
    with pytest.raises(ValidationError):
        study_tools.update_profile(shared, user, {"name": ""})


# -------------------------
# Chat
# -------------------------
def test_new_chat_starts_with_greeting(store):
    tutor = study_tools.load_messages(store, "tutor")
    counsellor = study_tools.load_messages(store, "counsellor")
    assert len(tutor) == 1 and tutor[0].id == "init" and tutor[0].role == "model"
    assert "AI Tutor" in tutor[0].text
    assert "Mira" in counsellor[0].text
    assert store.get(chat_key("tutor")) is None


def test_unknown_mode(store):
    with pytest.raises(NotFoundError):
        study_tools.load_messages(store, "oracle")


def test_send_message_persists_both_turns(store, fake_gemini):
    fake_gemini.reply("Let's start with atoms.")
    user_msg, bot_msg = study_tools.send_message(store, "tutor", "Teach me chemistry")

    saved = store.get(chat_key("tutor"))
    assert [m["role"] for m in saved] == ["model", "user", "model"]
    assert saved[1]["id"] == user_msg.id
    assert saved[2]["text"] == bot_msg.text == "Let's start with atoms."
    # history sent to the model excludes the new message
    assert fake_gemini.histories[0] == [{"role": "model", "parts": [{"text": study_tools.GREETINGS["tutor"]}]}]


def test_send_message_history_is_capped(store, fake_gemini):
    for i in range(15):
        study_tools.send_message(store, "counsellor", f"turn {i}")
    assert len(fake_gemini.histories[-1]) == 20
    assert fake_gemini.histories[-1][-1]["parts"] == [{"text": "ok"}]


def test_send_message_empty_reply_falls_back(store, fake_gemini):
    fake_gemini.reply(None)
    _, bot_msg = study_tools.send_message(store, "counsellor", "hello")
    assert bot_msg.text == study_tools.FALLBACK_REPLY


def test_send_message_failure_keeps_user_message(store, fake_gemini):
    fake_gemini.reply(ConnectionError("offline"))
    with pytest.raises(GenerationError):
        study_tools.send_message(store, "tutor", "Explain entropy")
    saved = store.get(chat_key("tutor"))
    assert saved[-1]["role"] == "user"
    assert saved[-1]["text"] == "Explain entropy"


def test_tutor_accepts_pdf_attachment(store, fake_gemini):
    user_msg, _ = study_tools.send_message(store, "tutor", "", PDF)
    assert store.get(chat_key("tutor"))[1]["attachment"]["name"] == "paper.pdf"
    assert fake_gemini.contents[0] == [{"mime_type": "application/pdf", "data": b"%PDF-1.4"}]
    assert user_msg.attachment == PDF


@pytest.mark.parametrize("mode,text,attachment", [
    ("tutor", "   ", None),
    ("counsellor", "see file", PDF),
    ("tutor", "zip?", Attachment(name="a.zip", mime_type="application/zip", data="UEs=")),
    ("tutor", "bad", Attachment(name="a.png", mime_type="image/png", data="%%%")),
])
def test_send_message_rejections(store, fake_gemini, mode, text, attachment):
    with pytest.raises(ValidationError):
        study_tools.send_message(store, mode, text, attachment)
    assert fake_gemini.models == []


def test_feedback_sets_and_replaces(store, fake_gemini):
    _, bot_msg = study_tools.send_message(store, "tutor", "hi")
    study_tools.give_feedback(store, "tutor", bot_msg.id, False, "too long")
    study_tools.give_feedback(store, "tutor", bot_msg.id, True)
    saved = {m["id"]: m for m in store.get(chat_key("tutor"))}
    assert saved[bot_msg.id]["feedback"] == {"is_helpful": True}


def test_feedback_unknown_message(store):
    with pytest.raises(NotFoundError):
        study_tools.give_feedback(store, "tutor", "nope", True)


# -------------------------
# PYQ
# -------------------------
def test_analyze_pyq_prepends_to_history(store, fake_gemini):
    fake_gemini.reply(
        '{"topics": [{"topic": "Optics", "importance": "Medium", "description": "d"}], "predicted_questions": []}',
        '{"topics": [], "predicted_questions": []}',
    )
    first = study_tools.analyze_pyq(store, "Physics", "Q: lenses")
    second = study_tools.analyze_pyq(store, "Chemistry", "", PDF)
    assert [a["id"] for a in store.get(PYQ_KEY)] == [second.id, first.id]
    assert study_tools.pyq_history(store)[1].topics[0].topic == "Optics"


@pytest.mark.parametrize("subject,text", [("", "Q1"), ("Physics", "  ")])
def test_analyze_pyq_validation(store, fake_gemini, subject, text):
    with pytest.raises(ValidationError):
        study_tools.analyze_pyq(store, subject, text)


def test_analyze_pyq_failure_stores_nothing(store, fake_gemini):
    fake_gemini.reply("oops, not json")
    with pytest.raises(GenerationError):
        study_tools.analyze_pyq(store, "Physics", "Q1")
    assert store.get(PYQ_KEY) is None


# -------------------------
# Routines
# -------------------------
def test_generate_routine_appends_and_becomes_current(store, fake_gemini):
    fake_gemini.reply(ROUTINE_JSON, ROUTINE_JSON)
    first = study_tools.generate_routine(store, "Board exams soon")
    second = study_tools.generate_routine(store, "Lighter day")
    assert [r["id"] for r in store.get(ROUTINES_KEY)] == [first.id, second.id]
    assert study_tools.current_routine(store).id == second.id
    assert second.date.count("/") == 2


def test_generate_routine_requires_preferences(store):
    with pytest.raises(ValidationError):
        study_tools.generate_routine(store, "")


def test_toggle_item_flips_and_persists(store, fake_gemini):
    fake_gemini.reply(ROUTINE_JSON)
    routine = study_tools.generate_routine(store, "anything")
    study_tools.toggle_item(store, routine.id, 1)
    assert study_tools.current_routine(store).items[1].completed is True
    study_tools.toggle_item(store, routine.id, 1)
    assert study_tools.current_routine(store).items[1].completed is False


def test_toggle_item_errors(store, fake_gemini):
    fake_gemini.reply(ROUTINE_JSON)
    routine = study_tools.generate_routine(store, "anything")
    with pytest.raises(NotFoundError):
        study_tools.toggle_item(store, routine.id, 4)
    with pytest.raises(NotFoundError):
        study_tools.toggle_item(store, "missing", 0)


def test_routine_stats(store, fake_gemini):
    fake_gemini.reply(ROUTINE_JSON)
    routine = study_tools.generate_routine(store, "anything")
    assert study_tools.routine_stats(routine) == [
        {"name": "Academic", "value": 2, "color": "#6366f1"},
        {"name": "Personal", "value": 1, "color": "#f59e0b"},
        {"name": "Health", "value": 1, "color": "#10b981"},
    ]
    assert study_tools.routine_stats(None) == []


# -------------------------
# Reviews
# -------------------------
def test_submit_review_prepends(shared, user):
    first = study_tools.submit_review(shared, user, 4, "Helpful tutor")
    second = study_tools.submit_review(shared, user, comment="Love the planner")
    reviews = study_tools.list_reviews(shared)
    assert [r.id for r in reviews] == [second.id, first.id]
    assert second.rating == 5
    assert reviews[0].user_name == "Ada Lovelace"
    assert reviews[0].user_avatar == user.avatar


@pytest.mark.parametrize("rating,comment", [(5, ""), (0, "x"), (6, "x"), ("five", "x"), (True, "x"), (4.7, "x"), ("4.7", "x")])
def test_submit_review_validation(shared, user, rating, comment):
    with pytest.raises(ValidationError):
        study_tools.submit_review(shared, user, rating, comment)
    assert shared.get(REVIEWS_KEY) is None


def test_seed_demo_only_fills_empty_board(shared, user):
    assert study_tools.seed_demo(shared) == 3
    assert study_tools.seed_demo(shared) == 0
    assert len(study_tools.list_reviews(shared)) == 3


# -------------------------
# Dashboard
# -------------------------
def test_dashboard_shows_first_three_items(store, fake_gemini):
    assert study_tools.dashboard(store)["today_routine"] == []
    fake_gemini.reply(ROUTINE_JSON)
    study_tools.generate_routine(store, "anything")
    board = study_tools.dashboard(store)
    assert [i["activity"] for i in board["today_routine"]] == ["Jog", "Calculus practice", "Call a friend"]
    assert [f["path"] for f in board["features"]] == ["/pyq-analyzer", "/tutor", "/counsellor", "/routine"]


def test_today_str_has_no_padding():
    from datetime import date
    assert study_tools.today_str(date(2026, 3, 7)) == "3/7/2026"


def test_submit_review_accepts_whole_float(shared, user):
    assert study_tools.submit_review(shared, user, 4.0, "Solid").rating == 4
