import asyncio
import socket
from collections.abc import Iterator
from typing import Any

import numpy as np
import pytest

from speech_relay.domain.state import ConnectionState
from speech_relay.domain.transcript import TranscriptAssembler
from speech_relay.ports.recognizer import RecognitionResult


SAMPLE_RATE = 16000
CHUNK_MS = 125
CHUNK_SIZE = int(SAMPLE_RATE * CHUNK_MS / 1000)
TEXT_NAMESPACE = "/text-stream"
DATA_NAMESPACE = "/data-updates"


def generate_silence(duration_ms: int = CHUNK_MS, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    return np.zeros(num_samples, dtype=np.int16)


def generate_sine_wave(
    frequency: float = 440.0,
    duration_ms: int = CHUNK_MS,
    amplitude: float = 0.5,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    num_samples = int(sample_rate * duration_ms / 1000)
    t = np.arange(num_samples) / sample_rate
    signal = np.sin(2 * np.pi * frequency * t) * amplitude
    return (signal * 32767).astype(np.int16)


def speech_chunks(duration_ms: int, chunk_ms: int = CHUNK_MS) -> list[np.ndarray]:
    return [generate_sine_wave(duration_ms=chunk_ms) for _ in range(duration_ms // chunk_ms)]


def silence_chunks(duration_ms: int, chunk_ms: int = CHUNK_MS) -> list[np.ndarray]:
    return [generate_silence(duration_ms=chunk_ms) for _ in range(duration_ms // chunk_ms)]


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


class FakeAudioSource:
    def __init__(self, chunks: list[np.ndarray] | None = None, repeat: np.ndarray | None = None) -> None:
        self._chunks = list(chunks or [])
        self._repeat = repeat
        self._started = False
        self.start_calls = 0
        self.stop_calls = 0
        self.reads = 0
        self.fail_on_start: Exception | None = None
        self.drained = asyncio.Event()

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE

    @property
    def buffer_size(self) -> int:
        return CHUNK_SIZE

    async def start(self) -> None:
        self.start_calls += 1
        if self.fail_on_start:
            raise self.fail_on_start
        self._started = True

    async def stop(self) -> None:
        self.stop_calls += 1
        self._started = False

    async def read_chunk(self) -> np.ndarray | None:
        await asyncio.sleep(0)
        if self._chunks:
            self.reads += 1
            return self._chunks.pop(0)
        if self._repeat is not None:
            self.reads += 1
            return self._repeat
        self.drained.set()
        return None

    def feed(self, chunks: list[np.ndarray]) -> None:
        self._chunks.extend(chunks)
        self.drained.clear()


class FakeStream:
    def __init__(self, words: Iterator[str] | None = None) -> None:
        self._words = words if words is not None else (f"w{i}" for i in range(10_000))
        self._current: list[str] = []
        self._pending = 0
        self.accepted = 0
        self.decodes = 0
        self.resets = 0
        self.release_calls = 0
        self.fail_after: int | None = None
        self.endpoint = False

    def accept_waveform(self, samples: np.ndarray, sample_rate: int) -> None:
        assert sample_rate == SAMPLE_RATE
        assert samples.dtype == np.float32
        self.accepted += 1
        if self.fail_after is not None and self.accepted > self.fail_after:
            raise RuntimeError("decoder crashed")
        if samples.size and float(np.sqrt(np.mean(samples.astype(np.float64) ** 2))) >= 0.01:
            self._pending += 1

    def is_ready(self) -> bool:
        return self._pending > 0

    def decode(self) -> None:
        self.decodes += 1
        self._pending -= 1
        self._current.append(next(self._words))

    def get_result(self) -> RecognitionResult:
        return RecognitionResult(text=" ".join(self._current), is_endpoint=self.endpoint)

    def reset(self) -> None:
        self.resets += 1
        self._current = []

    def release(self) -> None:
        self.release_calls += 1


class FakeRecognizer:
    def __init__(self, initialized: bool = True, words: list[str] | None = None) -> None:
        self._initialized = initialized
        self._words = iter(words or (f"w{i}" for i in range(10_000)))
        self.streams: list[FakeStream] = []
        self.fail_on_initialize: Exception | None = None
        self.fail_on_create: Exception | None = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        if self.fail_on_initialize:
            raise self.fail_on_initialize
        self._initialized = True

    def create_stream(self) -> FakeStream:
        if self.fail_on_create:
            raise self.fail_on_create
        stream = FakeStream(self._words)
        self.streams.append(stream)
        return stream

    @property
    def release_calls(self) -> int:
        return sum(stream.release_calls for stream in self.streams)


class FakeChannel:
    def __init__(self, namespace: str = DATA_NAMESPACE, connected: bool = True) -> None:
        self._namespace = namespace
        self._connected = connected
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, dict | None]] = []
        self.connect_calls: list[tuple[str, int]] = []
        self.disconnect_calls = 0

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def connection_state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._connected else ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._connected

    def on(self, event: str, handler) -> None:
        self.handlers[event] = handler

    async def connect(self, host: str, port: int) -> None:
        self.connect_calls.append((host, port))
        self._connected = True

    async def emit(self, event: str, payload: dict | None = None) -> bool:
        if not self._connected:
            return False
        self.emitted.append((event, payload))
        return True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def dispatch(self, event: str, payload: dict | None = None) -> None:
        handler = self.handlers.get(event)
        if handler is not None:
            handler(payload)


@pytest.fixture
def assembler():
    return TranscriptAssembler(
        min_interval_ms=1000,
        min_silence_duration_ms=500,
        max_latency_ms=3000,
        silence_threshold=0.01,
    )


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()


@pytest.fixture
def fake_audio():
    return FakeAudioSource()


@pytest.fixture
def data_channel():
    return FakeChannel(namespace=DATA_NAMESPACE)


@pytest.fixture
def text_channel():
    return FakeChannel(namespace=TEXT_NAMESPACE)
