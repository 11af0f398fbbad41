import asyncio
import logging
from collections.abc import Awaitable, Callable

import numpy as np

from speech_relay.domain.state import SessionState, validate_transition
from speech_relay.domain.state_store import StateStore
from speech_relay.domain.transcript import (
    TranscriptAssembler,
    audio_level,
    compute_rms,
    normalize_pcm16,
)
from speech_relay.errors import InferenceError, SpeechRelayError
from speech_relay.ports.audio import AudioSourcePort
from speech_relay.ports.recognizer import RecognitionResult, RecognizerPort, RecognizerStream

logger = logging.getLogger(__name__)

CommitCallback = Callable[[str], Awaitable[None]]


class TranscriptionController:
    def __init__(
        self,
        recognizer: RecognizerPort,
        audio: AudioSourcePort,
        assembler: TranscriptAssembler,
        store: StateStore | None = None,
        on_commit: CommitCallback | None = None,
    ) -> None:
        self._recognizer = recognizer
        self._audio = audio
        self._assembler = assembler
        self._store = store or StateStore()
        self._on_commit = on_commit

        self._session_state = SessionState.IDLE
        self._stream: RecognizerStream | None = None
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> StateStore:
        return self._store

    @property
    def session_state(self) -> SessionState:
        return self._session_state

    @property
    def is_capturing(self) -> bool:
        return self._session_state == SessionState.CAPTURING

    def set_commit_callback(self, callback: CommitCallback | None) -> None:
        self._on_commit = callback

    def _transition_to(self, target: SessionState) -> None:
        validate_transition(self._session_state, target)
        logger.info("State: %s -> %s", self._session_state.name, target.name)
        self._session_state = target

    def initialize_model(self) -> None:
        if self._recognizer.is_initialized:
            self._store.update(is_model_ready=True)
            return
        self._store.update(status_message="Loading speech model...", error=None)
        try:
            self._recognizer.initialize()
        except Exception as exc:
            logger.exception("Speech model initialization failed")
            self._store.update(
                is_model_ready=False,
                status_message=None,
                error=f"Model init error: {exc}",
            )
            return
        logger.info("Speech model initialized")
        self._store.update(is_model_ready=True, status_message="Speech model ready")

    async def start_listening(self) -> bool:
        if self._session_state == SessionState.CAPTURING:
            return False
        if not self._recognizer.is_initialized:
            self._store.update(error="Speech model not loaded yet.")
            return False

        try:
            await self._audio.start()
        except Exception as exc:
            logger.error("Audio source unavailable: %s", exc)
            self._store.update(is_listening=False, error=f"Mic error: {exc}")
            return False

        try:
            self._stream = self._recognizer.create_stream()
        except Exception as exc:
            logger.error("Recognizer stream unavailable: %s", exc)
            await self._stop_audio()
            self._store.update(is_listening=False, error=f"Recognizer error: {exc}")
            return False

        self._assembler.clear()
        self._stop_event = asyncio.Event()
        self._transition_to(SessionState.CAPTURING)
        self._store.update(is_listening=True, error=None, audio_level=0.0, transcription="")
        self._task = asyncio.create_task(self._capture_loop())
        return True

    async def stop_listening(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task

    def clear_transcription(self) -> None:
        if self._session_state == SessionState.CAPTURING:
            self._assembler.request_reset()
        else:
            self._assembler.clear()
        self._store.update(transcription="")

    async def _capture_loop(self) -> None:
        failed = False
        try:
            while not self._stop_event.is_set():
                chunk = await self._audio.read_chunk()
                if chunk is None or chunk.size == 0:
                    continue
                await self._process_chunk(chunk)
        except SpeechRelayError as exc:
            failed = True
            logger.error("Capture loop stopped: %s", exc)
            self._store.update(error=str(exc))
        except Exception as exc:
            failed = True
            logger.exception("Capture loop failed")
            self._store.update(error=f"Recognition error: {exc}")
        finally:
            await self._finish_session(flush=not failed)

    async def _process_chunk(self, chunk: np.ndarray) -> None:
        if chunk.dtype == np.int16:
            samples = normalize_pcm16(chunk)
        else:
            samples = chunk.astype(np.float32)
        rms = compute_rms(samples)
        sample_rate = self._audio.sample_rate

        if self._assembler.take_reset():
            logger.info("Transcription cleared, restarting recognizer stream")
            self._restart_stream()

        result = self._feed(samples, sample_rate)
        self._assembler.update_hypothesis(result.text)

        duration_ms = samples.size * 1000.0 / sample_rate
        if self._assembler.observe_chunk(duration_ms, rms, is_endpoint=result.is_endpoint):
            await self._commit()

        self._store.update(
            transcription=self._assembler.transcription,
            audio_level=audio_level(rms),
            is_listening=True,
        )

    def _feed(self, samples: np.ndarray, sample_rate: int) -> RecognitionResult:
        stream = self._require_stream()
        try:
            stream.accept_waveform(samples, sample_rate)
            return self._decode(stream)
        except SpeechRelayError:
            raise
        except Exception as exc:
            raise InferenceError(f"Recognition error: {exc}") from exc

    def _decode(self, stream: RecognizerStream) -> RecognitionResult:
        while stream.is_ready():
            stream.decode()
        return stream.get_result()

    async def _commit(self) -> None:
        stream = self._require_stream()
        try:
            result = self._decode(stream)
            segment = self._assembler.commit(result.text)
            stream.reset()
        except Exception as exc:
            raise InferenceError(f"Recognition error: {exc}") from exc

        if segment and self._on_commit:
            try:
                await self._on_commit(segment)
            except Exception:
                logger.warning("Commit callback failed for %r", segment, exc_info=True)

    def _restart_stream(self) -> None:
        self._release_stream()
        try:
            self._stream = self._recognizer.create_stream()
        except Exception as exc:
            raise InferenceError(f"Recognizer error: {exc}") from exc

    def _require_stream(self) -> RecognizerStream:
        if self._stream is None:
            raise InferenceError("Recognizer stream is not open")
        return self._stream

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.release()
        except Exception:
            logger.warning("Failed to release recognizer stream", exc_info=True)

    async def _stop_audio(self) -> None:
        try:
            await self._audio.stop()
        except Exception:
            logger.warning("Failed to stop audio source", exc_info=True)

    async def _finish_session(self, flush: bool = True) -> None:
        try:
            if self._assembler.take_reset() and self._stream is not None:
                self._restart_stream()
            if flush and self._stream is not None:
                await self._commit()
        except SpeechRelayError as exc:
            logger.error("Final flush failed: %s", exc)
            self._store.update(error=str(exc))
        finally:
            self._release_stream()
            await self._stop_audio()
            self._transition_to(SessionState.IDLE)
            self._store.update(
                transcription=self._assembler.transcription,
                is_listening=False,
                audio_level=0.0,
            )
            self._assembler.clear()
            self._task = None
            logger.info("Capture session ended")
