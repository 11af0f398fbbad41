import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from speech_relay.errors import ResourceAcquisitionError
from speech_relay.ports.recognizer import RecognitionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransducerModel:
    encoder: str
    decoder: str
    joiner: str
    tokens: str

    def missing_files(self) -> list[str]:
        return [path for path in (self.encoder, self.decoder, self.joiner, self.tokens) if not Path(path).is_file()]


class SherpaStream:
    def __init__(self, recognizer, stream) -> None:
        self._recognizer = recognizer
        self._stream = stream

    def accept_waveform(self, samples: np.ndarray, sample_rate: int) -> None:
        self._stream.accept_waveform(sample_rate, samples)

    def is_ready(self) -> bool:
        return bool(self._recognizer.is_ready(self._stream))

    def decode(self) -> None:
        self._recognizer.decode_stream(self._stream)

    def get_result(self) -> RecognitionResult:
        result = self._recognizer.get_result(self._stream)
        text = result if isinstance(result, str) else getattr(result, "text", "")
        return RecognitionResult(text=text, is_endpoint=bool(self._recognizer.is_endpoint(self._stream)))

    def reset(self) -> None:
        self._recognizer.reset(self._stream)

    def release(self) -> None:
        self._stream = None
        self._recognizer = None


class SherpaOnnxRecognizer:
    def __init__(
        self,
        model: TransducerModel,
        sample_rate: int = 16000,
        feature_dim: int = 80,
        num_threads: int = 1,
    ) -> None:
        self._model = model
        self._sample_rate = sample_rate
        self._feature_dim = feature_dim
        self._num_threads = num_threads
        self._recognizer = None

    @property
    def is_initialized(self) -> bool:
        return self._recognizer is not None

    def initialize(self) -> None:
        missing = self._model.missing_files()
        if missing:
            raise ResourceAcquisitionError(f"Model files missing: {', '.join(missing)}")

        import sherpa_onnx

        self._recognizer = sherpa_onnx.OnlineRecognizer.from_transducer(
            tokens=self._model.tokens,
            encoder=self._model.encoder,
            decoder=self._model.decoder,
            joiner=self._model.joiner,
            num_threads=self._num_threads,
            sample_rate=self._sample_rate,
            feature_dim=self._feature_dim,
            enable_endpoint_detection=True,
        )
        logger.info("Sherpa-ONNX recognizer initialized (threads=%d)", self._num_threads)

    def create_stream(self) -> SherpaStream:
        if self._recognizer is None:
            raise ResourceAcquisitionError("Recognizer is not initialized")
        return SherpaStream(self._recognizer, self._recognizer.create_stream())
