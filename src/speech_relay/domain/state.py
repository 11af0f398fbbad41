from enum import Enum, auto


class SessionState(Enum):
    IDLE = auto()
    CAPTURING = auto()


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()


VALID_TRANSITIONS: dict[Enum, set[Enum]] = {
    SessionState.IDLE: {SessionState.CAPTURING},
    SessionState.CAPTURING: {SessionState.IDLE},
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED},
}


class InvalidTransitionError(Exception):
    pass


def validate_transition(current: Enum, target: Enum) -> None:
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot transition from {current.name} to {target.name}")
