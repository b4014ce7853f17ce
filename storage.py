# storage.py — one JSON document per fixed key (browser local-storage analogue)
import os
import json
import logging
import tempfile
from typing import Any, Optional

logger = logging.getLogger(__name__)

# -------------------------
# Fixed keys
# -------------------------
USERS_KEY      = "scholar_users"
REVIEWS_KEY    = "scholar_reviews"
PYQ_KEY        = "scholar_pyq_history"
ROUTINES_KEY   = "scholar_routines"
CHAT_KEY_FMT   = "scholar_chat_{mode}"

SHARED_NAMESPACE = "shared"


def chat_key(mode: str) -> str:
    return CHAT_KEY_FMT.format(mode=mode)


class LocalStore:
    """
    Key/value store of whole JSON documents under ``<root>/<namespace>/<key>.json``.
    Every write replaces the full value; there is no locking, last write wins.
    """
    def __init__(self, root: str, namespace: str = SHARED_NAMESPACE):
        self.root = root
        self.namespace = namespace
        self.path = os.path.join(root, namespace)

    def _file(self, key: str) -> str:
        return os.path.join(self.path, f"{key}.json")

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        try:
            with open(self._file(key), "r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return default

    def set(self, key: str, value: Any) -> None:
        os.makedirs(self.path, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False)
            os.replace(tmp, self._file(key))
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        logger.debug("Stored %s/%s", self.namespace, key)

    def remove(self, key: str) -> None:
        try:
            os.remove(self._file(key))
        except FileNotFoundError:
            pass

    def keys(self):
        if not os.path.isdir(self.path):
            return []
        return sorted(f[:-5] for f in os.listdir(self.path) if f.endswith(".json"))


def shared_store(root: str) -> LocalStore:
    return LocalStore(root, SHARED_NAMESPACE)


def user_store(root: str, user_id: str) -> LocalStore:
    # User ids are generated from timestamps, but never trust them as path segments.
    safe = "".join(ch for ch in str(user_id) if ch.isalnum() or ch in "-_")
    if not safe:
        raise ValueError(f"Invalid user id: {user_id!r}")
    return LocalStore(root, f"user_{safe}")
