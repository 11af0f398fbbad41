import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

PROBLEM_PREFIX = "Problem: "
DEFAULT_QUESTION = "AI Response"


def now_ms() -> int:
    return int(time.time() * 1000)


def _timestamp_ms(value: Any) -> int:
    if isinstance(value, bool):
        return now_ms()
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value:
        if value.isdigit():
            return int(value)
        try:
            return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
        except ValueError:
            pass
    return now_ms()


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class Answer:
    id: str
    question: str
    answer: str
    timestamp: int
    type: str = "question"

    @classmethod
    def from_data_update(cls, payload: dict[str, Any] | None) -> "Answer | None":
        if not payload or payload.get("type") != "update":
            return None
        item = payload.get("newItem")
        if not isinstance(item, dict):
            return None
        question = _text(item.get("extractedText")).strip()
        if not question:
            return None
        answer = _text(item.get("gptResponse")) or _text(item.get("response"))
        timestamp = _timestamp_ms(item.get("timestamp"))
        filename = _text(item.get("filename"))
        return cls(
            id=f"{filename}-{timestamp}" if filename else f"ans-{timestamp}",
            question=question,
            answer=answer,
            timestamp=timestamp,
            type=_text(item.get("type")) or "image",
        )

    @classmethod
    def from_ai_response(cls, response: str, timestamp: int | None = None) -> "Answer":
        timestamp = now_ms() if timestamp is None else timestamp
        question = DEFAULT_QUESTION
        answer = response
        if response.startswith(PROBLEM_PREFIX):
            first_line_end = response.find("\n")
            if first_line_end != -1:
                question = response[len(PROBLEM_PREFIX):first_line_end].strip()
                answer = response[first_line_end + 1:].strip()
        return cls(
            id=f"ans-{timestamp}",
            question=question,
            answer=answer,
            timestamp=timestamp,
            type="ai_response",
        )


@dataclass(frozen=True)
class ChatMessage:
    id: str
    text: str
    is_user: bool
    timestamp: int

    @classmethod
    def from_answer(cls, answer: Answer) -> "ChatMessage":
        return cls(id=answer.id, text=answer.answer, is_user=False, timestamp=answer.timestamp)

    @classmethod
    def from_user(cls, text: str, prefix: str = "msg") -> "ChatMessage":
        return cls(id=f"{prefix}_{uuid.uuid4().hex[:12]}", text=text, is_user=True, timestamp=now_ms())


class MessageLog:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: list[ChatMessage] = []

    def append(self, message: ChatMessage) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        with self._lock:
            return tuple(self._messages)

    def find(self, message_id: str) -> ChatMessage | None:
        with self._lock:
            for message in self._messages:
                if message.id == message_id:
                    return message
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
