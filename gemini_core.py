# gemini_core.py — prompts, schemas and request shaping for the Gemini API
import os, json, time, uuid, base64, logging
from typing import List, Dict, Any, Optional

from dotenv import load_dotenv
import google.generativeai as genai

from models import Attachment, Message, PYQAnalysis, RoutineItem, IMPORTANCE_LEVELS, CATEGORIES

load_dotenv()
logger = logging.getLogger(__name__)

# -------------------------
# Env & model configuration
# -------------------------
GENERATION_MODEL    = os.getenv("GENERATION_MODEL", "gemini-2.5-flash")
FALLBACK_MODELS     = [m.strip() for m in os.getenv("FALLBACK_MODELS", "").split(",") if m.strip()]
CHAT_HISTORY_WINDOW = int(os.getenv("CHAT_HISTORY_WINDOW", "20"))

API_KEY = os.getenv("GEMINI_API_KEY", "")
genai.configure(api_key=API_KEY)


class GenerationError(RuntimeError):
    """The model call failed or returned something we cannot use."""


# -------------------------
# Prompting
# -------------------------
TUTOR_INSTRUCTION = (
    "You are an expert AI Tutor. Your goal is to explain complex topics simply, starting from the basics. "
    "Be patient, encouraging, and use examples. If a user asks something unrelated to learning, "
    "gently steer them back to academics. You can analyze images or documents if provided."
)

COUNSELLOR_INSTRUCTION = (
    "You are a warm, empathetic, and caring AI Counsellor. Your name is 'Mira'. "
    "Listen actively to the user's personal or academic struggles. Validate their feelings. "
    "Offer gentle, non-judgmental advice. Prioritize their mental well-being. "
    "Speak in a human-like, conversational tone."
)

PYQ_PROMPT = """
Analyze the following past year questions (provided as text or image) for the subject: {subject}.
Identify recurring themes and high-yield topics.
Predict the most important questions for the upcoming exam based on patterns.
Provide the answer and a detailed explanation for each predicted question.

Past Questions Text/Context:
{text}
"""

ROUTINE_PROMPT = """
Create a daily routine based on the following user preferences and goals: "{preferences}".
The routine should balance academic study, personal time, and health.
Return a list of specific time slots and activities.
"""

# -------------------------
# Response schemas
# -------------------------
PYQ_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "topics": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "topic": {"type": "STRING"},
                    "importance": {"type": "STRING", "enum": list(IMPORTANCE_LEVELS)},
                    "description": {"type": "STRING"},
                },
            },
        },
        "predicted_questions": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "question": {"type": "STRING"},
                    "answer": {"type": "STRING"},
                    "explanation": {"type": "STRING"},
                    "probability_score": {"type": "NUMBER", "description": "A number between 0 and 100"},
                },
            },
        },
    },
}

ROUTINE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "time": {"type": "STRING", "description": "e.g., 08:00 AM - 09:00 AM"},
            "activity": {"type": "STRING"},
            "category": {"type": "STRING", "enum": list(CATEGORIES)},
            "completed": {"type": "BOOLEAN"},
        },
    },
}


def json_config(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"response_mime_type": "application/json", "response_schema": schema}


# -------------------------
# Content shaping
# -------------------------
def attachment_part(att: Attachment) -> Dict[str, Any]:
    """Inline blob part; the stored attachment is base64, the SDK wants raw bytes."""
    return {"mime_type": att.mime_type, "data": base64.b64decode(att.data)}


def format_history(messages: List[Message], window: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Reshapes the most recent ``window`` messages into Gemini chat history.
    Messages stay in chronological order; the attachment part (if any) comes before the text part,
    and empty text is left out.
    """
    window = CHAT_HISTORY_WINDOW if window is None else window
    recent = messages[-window:] if window > 0 else []
    history = []
    for m in recent:
        parts: List[Dict[str, Any]] = []
        if m.attachment:
            parts.append(attachment_part(m.attachment))
        if m.text:
            parts.append({"text": m.text})
        history.append({"role": m.role, "parts": parts})
    return history


def _response_text(resp) -> Optional[str]:
    # resp.text raises ValueError when the candidate has no text parts (e.g. blocked)
    try:
        return resp.text
    except ValueError as exc:
        logger.warning("⚠️ Model returned no text: %s", exc)
        return None


def _parse_json(resp) -> Any:
    text = _response_text(resp)
    if not text:
        raise GenerationError("No response from AI")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Malformed JSON from AI: {exc}") from exc


def _candidate_models() -> List[str]:
    candidates = []
    for name in [GENERATION_MODEL] + FALLBACK_MODELS:
        if name and name not in candidates:
            candidates.append(name)
    return candidates


def _call_models(fn, what: str):
    """Runs ``fn(model_name)`` against each candidate model until one succeeds."""
    candidates = _candidate_models()
    last_error = None
    for model_name in candidates:
        try:
            logger.info("💬 %s via %s", what, model_name)
            return fn(model_name)
        except Exception as exc:
            logger.warning("❌ %s failed on %s: %s", what, model_name, exc)
            last_error = exc
    raise GenerationError(
        "Generation error: {}. Tried models: {}.".format(last_error, ", ".join(candidates))
    ) from last_error


def generate_content(contents, system_instruction: Optional[str] = None,
                     generation_config: Optional[Dict[str, Any]] = None):
    def run(model_name):
        model = genai.GenerativeModel(
            model_name,
            system_instruction=system_instruction,
            generation_config=generation_config,
        )
        return model.generate_content(contents)
    return _call_models(run, "generate_content")


def send_chat(history: List[Dict[str, Any]], content, system_instruction: str):
    def run(model_name):
        model = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        chat = model.start_chat(history=history)
        return chat.send_message(content)
    return _call_models(run, "send_message")


# -------------------------
# Public API
# -------------------------
def generate_text(prompt: str) -> Optional[str]:
    return _response_text(generate_content(prompt))


def analyze_pyq(subject: str, text: str, attachment: Optional[Attachment] = None) -> PYQAnalysis:
    """
    Predicts high-yield topics and likely questions from previous year papers.
    The attachment (photo or PDF of a paper) is sent before the instruction text.
    """
    parts: List[Any] = []
    if attachment:
        parts.append(attachment_part(attachment))
    parts.append({"text": PYQ_PROMPT.format(subject=subject, text=text or "")})

    result = _parse_json(generate_content(parts, generation_config=json_config(PYQ_SCHEMA)))
    if not isinstance(result, dict):
        raise GenerationError("Unexpected PYQ analysis shape from AI")

    try:
        return PYQAnalysis.from_dict({
            "id": str(uuid.uuid4()),
            "subject": subject,
            "topics": result.get("topics"),
            "predicted_questions": result.get("predicted_questions"),
            "timestamp": int(time.time() * 1000),
        })
    except (AttributeError, TypeError, ValueError) as exc:
        raise GenerationError(f"Unexpected PYQ analysis shape from AI: {exc}") from exc


def generate_routine(preferences: str) -> List[RoutineItem]:
    prompt = ROUTINE_PROMPT.format(preferences=preferences)
    result = _parse_json(generate_content(prompt, generation_config=json_config(ROUTINE_SCHEMA)))
    if not isinstance(result, list):
        raise GenerationError("Unexpected routine shape from AI")
    try:
        return [RoutineItem.from_dict(item) for item in result]
    except (AttributeError, TypeError, ValueError) as exc:
        raise GenerationError(f"Unexpected routine shape from AI: {exc}") from exc


def get_tutor_response(history: List[Dict[str, Any]], message: str,
                       attachment: Optional[Attachment] = None) -> Optional[str]:
    parts: List[Any] = []
    if attachment:
        parts.append(attachment_part(attachment))
    if message or not parts:
        parts.append({"text": message})
    return _response_text(send_chat(history, parts, TUTOR_INSTRUCTION))


def get_counsellor_response(history: List[Dict[str, Any]], message: str) -> Optional[str]:
    return _response_text(send_chat(history, message, COUNSELLOR_INSTRUCTION))
