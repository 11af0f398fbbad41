import json
from dataclasses import dataclass, field
from typing import Any

from speech_relay.errors import MalformedFrameError

DEFAULT_NAMESPACE = "/"

# Engine.IO packet types
OPEN = "0"
PING = "2"
PONG = "3"
MESSAGE = "4"
# Socket.IO packet types, carried inside MESSAGE
CONNECT = "0"
EVENT = "2"


@dataclass(frozen=True)
class Open:
    handshake: dict[str, Any] | None = None


@dataclass(frozen=True)
class Ping:
    pass


@dataclass(frozen=True)
class Pong:
    pass


@dataclass(frozen=True)
class NamespaceConnect:
    namespace: str = DEFAULT_NAMESPACE
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class Event:
    name: str
    payload: dict[str, Any] | None = None
    namespace: str = DEFAULT_NAMESPACE
    args: tuple = field(default=(), compare=False)


WirePacket = Open | Ping | Pong | NamespaceConnect | Event


def build_url(host: str, port: int) -> str:
    return f"ws://{host}:{port}/socket.io/?EIO=4&transport=websocket"


def _namespace_prefix(namespace: str) -> str:
    if namespace == DEFAULT_NAMESPACE:
        return ""
    return f"{namespace},"


def encode(packet: WirePacket) -> str:
    if isinstance(packet, Pong):
        return PONG
    if isinstance(packet, Ping):
        return PING
    if isinstance(packet, Open):
        return OPEN + (json.dumps(packet.handshake) if packet.handshake else "")
    if isinstance(packet, NamespaceConnect):
        body = json.dumps(packet.data) if packet.data else ""
        return MESSAGE + CONNECT + _namespace_prefix(packet.namespace) + body
    if isinstance(packet, Event):
        items: list[Any] = [packet.name]
        if packet.payload is not None:
            items.append(packet.payload)
        return MESSAGE + EVENT + _namespace_prefix(packet.namespace) + json.dumps(items)
    raise TypeError(f"Not a wire packet: {packet!r}")


def encode_event(namespace: str, name: str, payload: dict[str, Any] | None = None) -> str:
    return encode(Event(name=name, payload=payload, namespace=namespace))


def _split_namespace(body: str) -> tuple[str, str]:
    if not body.startswith("/"):
        return DEFAULT_NAMESPACE, body
    namespace, sep, rest = body.partition(",")
    if not sep:
        return namespace, ""
    return namespace, rest


def _parse_json(text: str, frame: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise MalformedFrameError(f"Invalid JSON in frame {frame[:80]!r}") from exc


def _decode_event(namespace: str, body: str, frame: str) -> Event:
    if not body:
        raise MalformedFrameError(f"Event frame without body: {frame[:80]!r}")
    items = _parse_json(body, frame)
    if not isinstance(items, list) or not items:
        raise MalformedFrameError(f"Event body is not a non-empty array: {frame[:80]!r}")
    name = items[0]
    if not isinstance(name, str):
        raise MalformedFrameError(f"Event name is not a string: {frame[:80]!r}")
    payload = items[1] if len(items) > 1 else None
    if payload is not None and not isinstance(payload, dict):
        raise MalformedFrameError(f"Event payload is not an object: {frame[:80]!r}")
    return Event(name=name, payload=payload, namespace=namespace, args=tuple(items[2:]))


def decode(frame: str) -> WirePacket:
    if not frame:
        raise MalformedFrameError("Empty frame")

    kind, body = frame[0], frame[1:]
    if kind == OPEN:
        if not body:
            return Open()
        handshake = _parse_json(body, frame)
        return Open(handshake=handshake if isinstance(handshake, dict) else None)
    if kind == PING:
        return Ping()
    if kind == PONG:
        return Pong()
    if kind != MESSAGE or not body:
        raise MalformedFrameError(f"Unsupported frame: {frame[:80]!r}")

    packet_type, rest = body[0], body[1:]
    namespace, payload = _split_namespace(rest)
    if packet_type == CONNECT:
        data = _parse_json(payload, frame) if payload else None
        return NamespaceConnect(namespace=namespace, data=data if isinstance(data, dict) else None)
    if packet_type == EVENT:
        return _decode_event(namespace, payload, frame)
    raise MalformedFrameError(f"Unsupported message packet: {frame[:80]!r}")
