import asyncio
import inspect
import logging
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from speech_relay.domain.state import ConnectionState, validate_transition
from speech_relay.domain.wire_protocol import (
    Event,
    NamespaceConnect,
    Open,
    Ping,
    Pong,
    build_url,
    decode,
    encode,
    encode_event,
)
from speech_relay.errors import MalformedFrameError, TransientTransportError
from speech_relay.ports.channel import EventHandler

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]
ConnectionCallback = Callable[[bool], None]


class SocketSession:
    def __init__(
        self,
        namespace: str,
        on_status: StatusCallback | None = None,
        on_connection_change: ConnectionCallback | None = None,
        open_timeout: float = 10.0,
    ) -> None:
        self._namespace = namespace
        self._on_status = on_status
        self._on_connection_change = on_connection_change
        self._open_timeout = open_timeout

        self._handlers: dict[str, EventHandler] = {}
        self._state = ConnectionState.DISCONNECTED
        self._closing = False
        self._websocket = None
        self._send_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def has_session(self) -> bool:
        return self._websocket is not None

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event] = handler

    def set_status_callback(self, callback: StatusCallback | None) -> None:
        self._on_status = callback

    def set_connection_callback(self, callback: ConnectionCallback | None) -> None:
        self._on_connection_change = callback

    def _transition_to(self, target: ConnectionState) -> None:
        validate_transition(self._state, target)
        logger.debug("Socket %s state: %s -> %s", self._namespace, self._state.name, target.name)
        self._state = target

    async def connect(self, host: str, port: int) -> None:
        if self._state != ConnectionState.DISCONNECTED:
            logger.warning("Socket %s already %s", self._namespace, self._state.name.lower())
            return

        self._transition_to(ConnectionState.CONNECTING)
        self._closing = False
        self._loop = asyncio.get_running_loop()
        url = build_url(host, port)
        logger.info("Connecting to %s (namespace %s)", url, self._namespace)

        try:
            async with websockets.connect(url, open_timeout=self._open_timeout) as websocket:
                self._websocket = websocket
                if self._closing:
                    logger.info("Socket %s closed during handshake", self._namespace)
                    return
                await self._send(encode(NamespaceConnect(namespace=self._namespace)))
                self._transition_to(ConnectionState.CONNECTED)
                logger.info("Socket connected: %s", self._namespace)
                self._notify_connection(True)
                await self._read_loop(websocket)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            error = TransientTransportError(f"Socket connection failed: {exc}")
            logger.warning("%s", error)
            self._notify_status(str(error))
        finally:
            self._websocket = None
            self._transition_to(ConnectionState.DISCONNECTED)
            logger.info("Socket disconnected: %s", self._namespace)
            self._notify_connection(False)

    async def disconnect(self) -> None:
        if self._state == ConnectionState.DISCONNECTED:
            return
        self._closing = True
        websocket = self._websocket
        # Still handshaking: connect closes as soon as the handshake returns.
        if websocket is None:
            return
        await websocket.close()

    async def emit(self, event: str, payload: dict[str, Any] | None = None) -> bool:
        if self._websocket is None or self._state != ConnectionState.CONNECTED:
            logger.debug("Dropping %s on %s: not connected", event, self._namespace)
            return False
        try:
            await self._send(encode_event(self._namespace, event, payload))
        except ConnectionClosed:
            logger.warning("Dropping %s on %s: connection closed", event, self._namespace)
            return False
        return True

    def emit_threadsafe(self, event: str, payload: dict[str, Any] | None = None) -> Future | None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping %s on %s: no running connection", event, self._namespace)
            return None
        return asyncio.run_coroutine_threadsafe(self.emit(event, payload), loop)

    async def _send(self, frame: str) -> None:
        websocket = self._websocket
        if websocket is None:
            return
        async with self._send_lock:
            await websocket.send(frame)

    async def _read_loop(self, websocket) -> None:
        try:
            async for message in websocket:
                if not isinstance(message, str):
                    continue
                await self._handle_frame(message)
        except ConnectionClosedError as exc:
            logger.warning("Socket %s dropped: %s", self._namespace, exc)
            self._notify_status(f"Connection lost: {exc}")

    async def _handle_frame(self, frame: str) -> None:
        try:
            packet = decode(frame)
        except MalformedFrameError as exc:
            logger.debug("Dropping frame: %s", exc)
            return

        if isinstance(packet, Ping):
            await self._send(encode(Pong()))
        elif isinstance(packet, Open):
            logger.debug("Handshake on %s: %s", self._namespace, packet.handshake)
        elif isinstance(packet, NamespaceConnect):
            if packet.namespace == self._namespace:
                logger.debug("Namespace %s joined: %s", self._namespace, packet.data)
        elif isinstance(packet, Event):
            await self._dispatch(packet)
        elif isinstance(packet, Pong):
            pass

    async def _dispatch(self, event: Event) -> None:
        if event.namespace != self._namespace:
            logger.debug("Ignoring %s from foreign namespace %s", event.name, event.namespace)
            return
        handler = self._handlers.get(event.name)
        if handler is None:
            logger.debug("No handler for %s on %s", event.name, self._namespace)
            return
        try:
            result = handler(event.payload)
            if inspect.isawaitable(result):
                await result
        except MalformedFrameError as exc:
            logger.debug("Dropping %s: %s", event.name, exc)
        except Exception:
            logger.exception("Handler for %s on %s failed", event.name, self._namespace)

    def _notify_status(self, message: str) -> None:
        if self._on_status:
            try:
                self._on_status(message)
            except Exception:
                logger.warning("Status callback failed", exc_info=True)

    def _notify_connection(self, connected: bool) -> None:
        if self._on_connection_change:
            try:
                self._on_connection_change(connected)
            except Exception:
                logger.warning("Connection callback failed", exc_info=True)
