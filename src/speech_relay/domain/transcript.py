import logging
import re
import threading
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

NOISE_ANNOTATION = re.compile(r"\[.*?\]|\(.*?\)")
WHITESPACE = re.compile(r"\s+")
LEVEL_GAIN = 10.0


def sanitize_hypothesis(text: str) -> str:
    stripped = NOISE_ANNOTATION.sub(" ", text)
    return WHITESPACE.sub(" ", stripped).strip()


def join_text(head: str, tail: str) -> str:
    if not head:
        return tail
    if not tail:
        return head
    return f"{head} {tail}"


def normalize_pcm16(samples: np.ndarray) -> np.ndarray:
    return samples.astype(np.float32) / 32768.0


def compute_rms(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))


def audio_level(rms: float) -> float:
    return float(min(max(rms * LEVEL_GAIN, 0.0), 1.0))


class ResetSlot:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requested = False

    def request(self) -> None:
        with self._lock:
            self._requested = True

    def take(self) -> bool:
        with self._lock:
            requested = self._requested
            self._requested = False
            return requested

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._requested


@dataclass
class PendingUtterance:
    committed_text: str = ""
    live_hypothesis: str = ""


class TranscriptAssembler:
    """Decides when a live hypothesis becomes committed text.

    Every audio chunk advances the decode timer. A chunk whose RMS falls
    below ``silence_threshold`` extends the current pause, anything louder
    ends it. A commit fires on a pause once ``min_interval_ms`` has passed
    since the last one, or unconditionally once ``max_latency_ms`` has
    passed. Committed text only grows until ``clear()`` or
    ``request_reset()``.
    """

    def __init__(
        self,
        min_interval_ms: int = 1000,
        min_silence_duration_ms: int = 500,
        max_latency_ms: int = 3000,
        silence_threshold: float = 0.01,
    ) -> None:
        if max_latency_ms < min_interval_ms:
            raise ValueError("max_latency_ms must not be shorter than min_interval_ms")
        self._min_interval_ms = min_interval_ms
        self._min_silence_duration_ms = min_silence_duration_ms
        self._max_latency_ms = max_latency_ms
        self._silence_threshold = silence_threshold

        self._lock = threading.Lock()
        self._pending = PendingUtterance()
        self._reset = ResetSlot()
        self._time_since_last_decode_ms = 0.0
        self._silence_duration_ms = 0.0

    @property
    def committed_text(self) -> str:
        with self._lock:
            return self._pending.committed_text

    @property
    def live_hypothesis(self) -> str:
        with self._lock:
            return self._pending.live_hypothesis

    @property
    def transcription(self) -> str:
        with self._lock:
            return join_text(self._pending.committed_text, self._pending.live_hypothesis)

    @property
    def time_since_last_decode_ms(self) -> float:
        return self._time_since_last_decode_ms

    @property
    def silence_duration_ms(self) -> float:
        return self._silence_duration_ms

    def is_silent(self, rms: float) -> bool:
        return rms < self._silence_threshold

    def observe_chunk(self, duration_ms: float, rms: float, is_endpoint: bool = False) -> bool:
        self._time_since_last_decode_ms += duration_ms
        if self.is_silent(rms):
            self._silence_duration_ms += duration_ms
        else:
            self._silence_duration_ms = 0.0

        paused = is_endpoint or self._silence_duration_ms >= self._min_silence_duration_ms
        pause_detected = paused and self._time_since_last_decode_ms >= self._min_interval_ms
        ceiling_hit = self._time_since_last_decode_ms >= self._max_latency_ms
        if pause_detected or ceiling_hit:
            logger.debug(
                "Decode trigger (%s) after %.0fms, silence=%.0fms",
                "pause" if pause_detected else "ceiling",
                self._time_since_last_decode_ms,
                self._silence_duration_ms,
            )
        return pause_detected or ceiling_hit

    def update_hypothesis(self, text: str) -> None:
        with self._lock:
            if self._reset.pending:
                return
            self._pending.live_hypothesis = sanitize_hypothesis(text)

    def commit(self, hypothesis: str) -> str | None:
        self._time_since_last_decode_ms = 0.0
        segment = sanitize_hypothesis(hypothesis)
        with self._lock:
            self._pending.live_hypothesis = ""
            # Text decoded before a clear belongs to the discarded stream.
            if not segment or self._reset.pending:
                return None
            self._pending.committed_text = join_text(self._pending.committed_text, segment)
        logger.info("Commit: %s", segment)
        return segment

    def request_reset(self) -> None:
        with self._lock:
            self._pending = PendingUtterance()
            self._reset.request()
        self._time_since_last_decode_ms = 0.0
        self._silence_duration_ms = 0.0

    def take_reset(self) -> bool:
        return self._reset.take()

    def clear(self) -> None:
        with self._lock:
            self._pending = PendingUtterance()
        self._time_since_last_decode_ms = 0.0
        self._silence_duration_ms = 0.0
