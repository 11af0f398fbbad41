from typing import Protocol

from speech_relay.domain.state_store import StateStore


class SpeechRecognizerPort(Protocol):
    @property
    def state(self) -> StateStore: ...

    def initialize_model(self) -> None: ...
    async def start_listening(self) -> bool: ...
    async def stop_listening(self) -> None: ...
    def clear_transcription(self) -> None: ...
