import asyncio
import logging
from collections.abc import Callable

from speech_relay.adapters.data_updates import DataUpdatesClient
from speech_relay.adapters.text_stream import TextStreamClient
from speech_relay.domain.messages import Answer, ChatMessage, MessageLog
from speech_relay.ports.speech import SpeechRecognizerPort

logger = logging.getLogger(__name__)

SCREENSHOT_PROMPTS = frozenset({"debug"})

StatusListener = Callable[[str | None], None]


def prompt_label(prompt_type: str, screenshot_required: bool) -> str:
    label = prompt_type[:1].upper() + prompt_type[1:]
    return f"{label} (Snapshot)" if screenshot_required else label


class SpeechRelay:
    def __init__(
        self,
        speech: SpeechRecognizerPort,
        text_stream: TextStreamClient,
        data: DataUpdatesClient,
        host: str,
        port: int,
    ) -> None:
        self._speech = speech
        self._text_stream = text_stream
        self._data = data
        self._host = host
        self._port = port

        self._messages = MessageLog()
        self._status_message: str | None = None
        self._status_listeners: list[StatusListener] = []
        self._tasks: set[asyncio.Task] = set()

        data.set_answer_callback(self._on_answer)
        data.set_status_callback(self.report_status)
        text_stream.set_transcription_callback(self._on_question)

    @property
    def speech(self) -> SpeechRecognizerPort:
        return self._speech

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self._messages.messages

    @property
    def status_message(self) -> str | None:
        return self._status_message

    @property
    def is_data_connected(self) -> bool:
        return self._data.is_connected

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def dismiss_status(self) -> None:
        self.report_status(None)

    def report_status(self, message: str | None) -> None:
        self._status_message = message
        for listener in self._status_listeners:
            listener(message)

    def _on_answer(self, answer: Answer) -> None:
        self._messages.append(ChatMessage.from_answer(answer))

    def _on_question(self, question: str) -> None:
        if question:
            self._messages.append(ChatMessage.from_user(question, prefix="q"))

    async def forward_commit(self, text: str) -> None:
        if self._text_stream.is_connected:
            await self._text_stream.send_text_chunk(text)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def connect_text_stream(self) -> asyncio.Task:
        return self._spawn(self._text_stream.connect(self._host, self._port))

    def connect_data(self) -> asyncio.Task:
        return self._spawn(self._data.connect(self._host, self._port))

    async def toggle_data_connection(self) -> None:
        if self._data.is_connected:
            await self._data.disconnect()
        else:
            self.connect_data()

    async def trigger_manual_processing(self) -> bool:
        text = self._speech.state.value.transcription
        if not self._data.is_connected or not text.strip():
            return False

        logger.info("Manually processing transcription: %r", text)
        self._messages.append(ChatMessage.from_user(text))
        await self._data.send_transcription_chunk(text)
        self._speech.clear_transcription()
        await self._data.process_transcription()
        return True

    async def send_prompt_option(self, prompt_type: str, message_id: str | None) -> bool:
        if not message_id or not self._data.is_connected:
            self.report_status("Cannot send command (Disconnected or No Message ID)")
            return False

        screenshot_required = prompt_type in SCREENSHOT_PROMPTS
        self._messages.append(ChatMessage.from_user(prompt_label(prompt_type, screenshot_required), prefix="cmd"))
        await self._data.emit_use_prompt(prompt_type, message_id, screenshot_required)
        return True

    async def shutdown(self) -> None:
        await self._speech.stop_listening()
        await self._text_stream.disconnect()
        await self._data.disconnect()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
