from dataclasses import dataclass
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    is_endpoint: bool = False


class RecognizerStream(Protocol):
    def accept_waveform(self, samples: np.ndarray, sample_rate: int) -> None: ...
    def is_ready(self) -> bool: ...
    def decode(self) -> None: ...
    def get_result(self) -> RecognitionResult: ...
    def reset(self) -> None: ...
    def release(self) -> None: ...


class RecognizerPort(Protocol):
    @property
    def is_initialized(self) -> bool: ...

    def initialize(self) -> None: ...
    def create_stream(self) -> RecognizerStream: ...
