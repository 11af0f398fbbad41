import asyncio
import logging
import os

import janus
import numpy as np
import sounddevice as sd

from speech_relay.errors import ResourceAcquisitionError

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 2
MIN_BUFFER_BYTES = 4096


def buffer_size_bytes(device_minimum: int, floor: int = MIN_BUFFER_BYTES) -> int:
    return max(device_minimum, floor)


def resolve_input_device(device: str | int | None) -> int | None:
    if device is None or isinstance(device, int):
        return device
    if device.isdigit():
        return int(device)

    needle = device.lower()
    candidates = [
        (index, info["name"])
        for index, info in enumerate(sd.query_devices())
        if info["max_input_channels"] > 0 and needle in info["name"].lower()
    ]
    if candidates:
        index, name = candidates[0]
        logger.info("Capture device '%s' is #%d (%s)", device, index, name)
        return index

    os.environ["PIPEWIRE_NODE"] = device
    logger.info("Capture device '%s' unknown to PortAudio, routing via PIPEWIRE_NODE", device)
    return None


class SounddeviceCapture:
    def __init__(
        self,
        device: str | int | None = None,
        sample_rate: int = 16000,
        min_buffer_bytes: int = MIN_BUFFER_BYTES,
        read_timeout: float = 0.5,
    ) -> None:
        self._device = device or None
        self._sample_rate = sample_rate
        self._min_buffer_bytes = min_buffer_bytes
        self._read_timeout = read_timeout
        self._buffer_size = buffer_size_bytes(0, min_buffer_bytes) // BYTES_PER_SAMPLE
        self._stream: sd.InputStream | None = None
        self._queue: janus.Queue[np.ndarray] | None = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    async def start(self) -> None:
        if self._stream is not None:
            return
        self._queue = janus.Queue(maxsize=32)

        def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio capture status: %s", status)
            try:
                self._queue.sync_q.put_nowait(indata[:, 0].copy())
            except janus.SyncQueueFull:
                pass

        try:
            device = resolve_input_device(self._device)
            self._buffer_size = self._device_buffer_size(device)
            self._stream = sd.InputStream(
                device=device,
                samplerate=self._sample_rate,
                channels=1,
                dtype="int16",
                blocksize=self._buffer_size,
                callback=audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            self._stream = None
            self._close_queue()
            raise ResourceAcquisitionError(f"Cannot open audio input: {exc}") from exc

        logger.info(
            "Audio capture started (device=%s, rate=%d, buffer=%d samples)",
            device, self._sample_rate, self._buffer_size,
        )

    async def stop(self) -> None:
        if self._stream:
            self._stream.stop()
            self._stream.close()
            self._stream = None
            logger.info("Audio capture stopped")
        self._close_queue()

    async def read_chunk(self) -> np.ndarray | None:
        if not self._queue:
            return None
        try:
            return await asyncio.wait_for(self._queue.async_q.get(), timeout=self._read_timeout)
        except asyncio.TimeoutError:
            return None
        except janus.AsyncQueueShutDown:
            return None

    def _close_queue(self) -> None:
        if self._queue:
            self._queue.close()
            self._queue = None

    def _device_buffer_size(self, device: int | None) -> int:
        info = sd.query_devices(device, kind="input")
        latency = float(info.get("default_low_input_latency", 0.0))
        device_minimum = int(latency * self._sample_rate) * BYTES_PER_SAMPLE
        return buffer_size_bytes(device_minimum, self._min_buffer_bytes) // BYTES_PER_SAMPLE
