# models.py — plain records persisted as JSON blobs
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Any, Optional

ROLES = ("user", "model")
IMPORTANCE_LEVELS = ("High", "Medium", "Low")
CATEGORIES = ("academic", "personal", "health")


class LoadingState(Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# -------------------------
# Users
# -------------------------
@dataclass
class User:
    id: str
    name: str
    email: str
    avatar: str
    bio: Optional[str] = None
    grade: Optional[str] = None
    goal: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "User":
        return cls(
            id=str(d.get("id", "")),
            name=d.get("name", ""),
            email=d.get("email", ""),
            avatar=d.get("avatar", ""),
            bio=d.get("bio"),
            grade=d.get("grade"),
            goal=d.get("goal"),
        )


# -------------------------
# Chat
# -------------------------
@dataclass
class Feedback:
    is_helpful: bool
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(asdict(self))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Feedback":
        return cls(is_helpful=bool(d.get("is_helpful")), comment=d.get("comment"))


@dataclass
class Attachment:
    name: str
    mime_type: str
    data: str  # base64

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Attachment":
        return cls(name=d.get("name", ""), mime_type=d.get("mime_type", ""), data=d.get("data", ""))


@dataclass
class Message:
    id: str
    role: str
    text: str
    timestamp: int
    feedback: Optional[Feedback] = None
    attachment: Optional[Attachment] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"id": self.id, "role": self.role, "text": self.text, "timestamp": self.timestamp}
        if self.feedback is not None:
            d["feedback"] = self.feedback.to_dict()
        if self.attachment is not None:
            d["attachment"] = self.attachment.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        fb = d.get("feedback")
        att = d.get("attachment")
        return cls(
            id=d.get("id", ""),
            role=d.get("role", "user"),
            text=d.get("text", ""),
            timestamp=int(d.get("timestamp", 0)),
            feedback=Feedback.from_dict(fb) if fb else None,
            attachment=Attachment.from_dict(att) if att else None,
        )


# -------------------------
# PYQ analysis
# -------------------------
@dataclass
class Topic:
    topic: str
    importance: str
    description: str


@dataclass
class PredictedQuestion:
    question: str
    answer: str
    explanation: str
    probability_score: float


@dataclass
class PYQAnalysis:
    id: str
    subject: str
    topics: List[Topic] = field(default_factory=list)
    predicted_questions: List[PredictedQuestion] = field(default_factory=list)
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PYQAnalysis":
        # The model's JSON is trusted as-is; missing fields fall back to empty values.
        topics = [
            Topic(
                topic=t.get("topic", ""),
                importance=t.get("importance", "Low"),
                description=t.get("description", ""),
            )
            for t in d.get("topics") or []
        ]
        questions = [
            PredictedQuestion(
                question=q.get("question", ""),
                answer=q.get("answer", ""),
                explanation=q.get("explanation", ""),
                probability_score=q.get("probability_score", 0),
            )
            for q in d.get("predicted_questions") or []
        ]
        return cls(
            id=d.get("id", ""),
            subject=d.get("subject", ""),
            topics=topics,
            predicted_questions=questions,
            timestamp=int(d.get("timestamp", 0)),
        )


# -------------------------
# Routines
# -------------------------
@dataclass
class RoutineItem:
    time: str
    activity: str
    category: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RoutineItem":
        return cls(
            time=d.get("time", ""),
            activity=d.get("activity", ""),
            category=d.get("category", "personal"),
            completed=bool(d.get("completed", False)),
        )


@dataclass
class Routine:
    id: str
    date: str
    items: List[RoutineItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "date": self.date, "items": [i.to_dict() for i in self.items]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Routine":
        return cls(
            id=d.get("id", ""),
            date=d.get("date", ""),
            items=[RoutineItem.from_dict(i) for i in d.get("items") or []],
        )


# -------------------------
# Reviews
# -------------------------
@dataclass
class Review:
    id: str
    user_name: str
    user_avatar: str
    rating: int
    comment: str
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Review":
        return cls(
            id=d.get("id", ""),
            user_name=d.get("user_name", ""),
            user_avatar=d.get("user_avatar", ""),
            rating=int(d.get("rating", 5)),
            comment=d.get("comment", ""),
            date=d.get("date", ""),
        )
