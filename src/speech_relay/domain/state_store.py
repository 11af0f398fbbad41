import dataclasses
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeechState:
    transcription: str = ""
    is_listening: bool = False
    is_downloading: bool = False
    is_model_ready: bool = False
    status_message: str | None = None
    audio_level: float = 0.0
    error: str | None = None


StateListener = Callable[[SpeechState], None]


class StateStore:
    def __init__(self, initial: SpeechState | None = None) -> None:
        self._state = initial or SpeechState()
        self._lock = threading.RLock()
        self._listeners: list[StateListener] = []

    @property
    def value(self) -> SpeechState:
        with self._lock:
            return self._state

    def update(self, **changes) -> SpeechState:
        with self._lock:
            self._state = dataclasses.replace(self._state, **changes)
            snapshot = self._state
            listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(snapshot)
                except Exception:
                    logger.exception("State listener failed")
        return snapshot

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
