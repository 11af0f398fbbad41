from collections.abc import Callable
from typing import Any, Protocol

from speech_relay.domain.state import ConnectionState

EventHandler = Callable[[dict[str, Any] | None], Any]


class EventChannelPort(Protocol):
    @property
    def namespace(self) -> str: ...

    @property
    def connection_state(self) -> ConnectionState: ...

    @property
    def is_connected(self) -> bool: ...

    def on(self, event: str, handler: EventHandler) -> None: ...
    async def connect(self, host: str, port: int) -> None: ...
    async def emit(self, event: str, payload: dict[str, Any] | None = None) -> bool: ...
    async def disconnect(self) -> None: ...
