import logging
from collections.abc import Callable
from typing import Any

from speech_relay.errors import MalformedFrameError
from speech_relay.ports.channel import EventChannelPort

logger = logging.getLogger(__name__)

TranscriptionCallback = Callable[[str], None]


class TextStreamClient:
    def __init__(
        self,
        session: EventChannelPort,
        on_transcription: TranscriptionCallback | None = None,
    ) -> None:
        self._session = session
        self._on_transcription = on_transcription
        session.on("questions_extracted", self._on_questions_extracted)
        session.on("session_started", self._on_session_started)

    @property
    def session(self) -> EventChannelPort:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    def set_transcription_callback(self, callback: TranscriptionCallback | None) -> None:
        self._on_transcription = callback

    async def connect(self, host: str, port: int) -> None:
        await self._session.connect(host, port)

    async def disconnect(self) -> None:
        await self._session.disconnect()

    async def send_text_chunk(self, text: str) -> bool:
        return await self._session.emit("text_chunk", {"text": text})

    def _on_questions_extracted(self, payload: dict[str, Any] | None) -> None:
        questions = (payload or {}).get("questions")
        if not isinstance(questions, list):
            raise MalformedFrameError("questions_extracted without a questions array")
        for entry in questions:
            text = entry.get("question") if isinstance(entry, dict) else None
            question = text if isinstance(text, str) else ""
            logger.info("Question extracted: %s", question)
            if self._on_transcription:
                self._on_transcription(question)

    def _on_session_started(self, payload: dict[str, Any] | None) -> None:
        logger.info("Text stream session started: %s", payload)
