import os

import pytest

os.environ.setdefault("LOG_FILE", "")

import gemini_core
from app import app as flask_app
from storage import shared_store, user_store


class FakeResponse:
    def __init__(self, text):
        self._text = text

    @property
    def text(self):
        if self._text is None:
            raise ValueError("The response has no text parts.")
        return self._text


class FakeGemini:
    """Stands in for genai.GenerativeModel; replies are consumed in order (str, None or an exception)."""

    def __init__(self):
        self.replies = []
        self.models = []          # (model_name, kwargs)
        self.contents = []        # what generate_content / send_message received
        self.histories = []       # history passed to start_chat

    def reply(self, *replies):
        self.replies.extend(replies)
        return self

    def _next(self):
        item = self.replies.pop(0) if self.replies else "ok"
        if isinstance(item, Exception):
            raise item
        return FakeResponse(item)

    def __call__(self, model_name, **kwargs):
        self.models.append((model_name, kwargs))
        return _FakeModel(self)


class _FakeModel:
    def __init__(self, fake):
        self.fake = fake

    def generate_content(self, contents):
        self.fake.contents.append(contents)
        return self.fake._next()

    def start_chat(self, history=None):
        self.fake.histories.append(history)
        return _FakeChat(self.fake)


class _FakeChat:
    def __init__(self, fake):
        self.fake = fake

    def send_message(self, content):
        self.fake.contents.append(content)
        return self.fake._next()


@pytest.fixture
def fake_gemini(monkeypatch):
    fake = FakeGemini()
    monkeypatch.setattr(gemini_core.genai, "GenerativeModel", fake)
    monkeypatch.setattr(gemini_core, "GENERATION_MODEL", "gemini-test")
    monkeypatch.setattr(gemini_core, "FALLBACK_MODELS", [])
    monkeypatch.setattr(gemini_core, "CHAT_HISTORY_WINDOW", 20)
    return fake


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def shared(data_dir):
    return shared_store(data_dir)


@pytest.fixture
def store(data_dir):
    return user_store(data_dir, "1700000000000")


@pytest.fixture
def client(data_dir, fake_gemini):
    flask_app.config.update(TESTING=True, DATA_DIR=data_dir, SECRET_KEY="test-secret")
    with flask_app.test_client() as c:
        yield c


@pytest.fixture
def logged_in(client):
    resp = client.post("/api/login", json={"email": "ada@example.com", "name": "Ada Lovelace"})
    assert resp.status_code == 200
    return client
