import logging
from collections.abc import Callable
from typing import Any

from speech_relay.domain.messages import Answer
from speech_relay.ports.channel import EventChannelPort

logger = logging.getLogger(__name__)

AnswerCallback = Callable[[Answer], None]
StatusCallback = Callable[[str], None]

STATUS_EVENTS = (
    "screenshot_captured",
    "ocr_started",
    "ocr_complete",
    "ai_processing_started",
)


def _message(payload: dict[str, Any] | None, key: str = "message") -> str | None:
    value = (payload or {}).get(key)
    return value if isinstance(value, str) else None


class DataUpdatesClient:
    def __init__(
        self,
        session: EventChannelPort,
        on_answer: AnswerCallback | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._session = session
        self._on_answer = on_answer
        self._on_status = on_status

        session.on("connected", self._on_connected)
        session.on("data_update", self._on_data_update)
        for event in STATUS_EVENTS:
            session.on(event, self._on_status_event)
        session.on("ai_processing_complete", self._on_processing_complete)
        session.on("aiprocessing_error", self._on_processing_error)

    @property
    def session(self) -> EventChannelPort:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    def set_answer_callback(self, callback: AnswerCallback | None) -> None:
        self._on_answer = callback

    def set_status_callback(self, callback: StatusCallback | None) -> None:
        self._on_status = callback

    async def connect(self, host: str, port: int) -> None:
        await self._session.connect(host, port)

    async def disconnect(self) -> None:
        await self._session.disconnect()

    async def send_transcription_chunk(self, text: str) -> bool:
        return await self._session.emit("transcription_chunk", {"text": text})

    async def process_transcription(self) -> bool:
        return await self._session.emit("process_transcription", {})

    async def emit_use_prompt(self, prompt_type: str, message_id: str, screenshot_required: bool) -> bool:
        return await self._session.emit(
            "use_prompt",
            {
                "promptType": prompt_type,
                "messageId": message_id,
                "screenshotRequired": screenshot_required,
            },
        )

    def _publish_status(self, message: str) -> None:
        logger.info("Status: %s", message)
        if self._on_status:
            self._on_status(message)

    def _publish_answer(self, answer: Answer) -> None:
        logger.info("Answer: %s", answer.question[:80])
        if self._on_answer:
            self._on_answer(answer)

    def _on_connected(self, payload: dict[str, Any] | None) -> None:
        logger.debug("Data channel acknowledged: %s", payload)

    def _on_data_update(self, payload: dict[str, Any] | None) -> None:
        answer = Answer.from_data_update(payload)
        if answer is None:
            logger.debug("Ignoring data update without extracted text")
            return
        self._publish_answer(answer)

    def _on_status_event(self, payload: dict[str, Any] | None) -> None:
        message = _message(payload)
        if message is not None:
            self._publish_status(message)

    def _on_processing_complete(self, payload: dict[str, Any] | None) -> None:
        message = _message(payload)
        if message is not None:
            self._publish_status(message)
        response = _message(payload, "response")
        if response:
            self._publish_answer(Answer.from_ai_response(response))

    def _on_processing_error(self, payload: dict[str, Any] | None) -> None:
        message = _message(payload) or ""
        error = _message(payload, "error")
        self._publish_status(f"{message}: {error}" if error else message)
