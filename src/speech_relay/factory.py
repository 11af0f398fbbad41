import logging

from speech_relay.adapters.config_api import ConfigApiClient
from speech_relay.adapters.data_updates import DataUpdatesClient
from speech_relay.adapters.sherpa_recognizer import SherpaOnnxRecognizer, TransducerModel
from speech_relay.adapters.socket_session import SocketSession
from speech_relay.adapters.sounddevice_audio import SounddeviceCapture
from speech_relay.adapters.text_stream import TextStreamClient
from speech_relay.config import SpeechRelayConfig
from speech_relay.domain.controller import TranscriptionController
from speech_relay.domain.transcript import TranscriptAssembler
from speech_relay.relay import SpeechRelay

logger = logging.getLogger(__name__)


def create_transducer_model(config: SpeechRelayConfig) -> TransducerModel:
    return TransducerModel(
        encoder=config.model_path(config.encoder_file),
        decoder=config.model_path(config.decoder_file),
        joiner=config.model_path(config.joiner_file),
        tokens=config.model_path(config.tokens_file),
    )


def create_recognizer(config: SpeechRelayConfig) -> SherpaOnnxRecognizer:
    return SherpaOnnxRecognizer(
        model=create_transducer_model(config),
        sample_rate=config.sample_rate,
        num_threads=config.recognizer_threads,
    )


def create_capture(config: SpeechRelayConfig) -> SounddeviceCapture:
    return SounddeviceCapture(
        device=config.capture_device,
        sample_rate=config.sample_rate,
        min_buffer_bytes=config.min_buffer_bytes,
        read_timeout=config.read_timeout_seconds,
    )


def create_assembler(config: SpeechRelayConfig) -> TranscriptAssembler:
    return TranscriptAssembler(
        min_interval_ms=config.min_interval_ms,
        min_silence_duration_ms=config.min_silence_duration_ms,
        max_latency_ms=config.max_latency_ms,
        silence_threshold=config.silence_rms_threshold,
    )


def create_controller(config: SpeechRelayConfig) -> TranscriptionController:
    return TranscriptionController(
        recognizer=create_recognizer(config),
        audio=create_capture(config),
        assembler=create_assembler(config),
    )


def create_config_api(config: SpeechRelayConfig) -> ConfigApiClient:
    return ConfigApiClient(base_url=config.base_url, timeout=config.config_api_timeout_seconds)


def create_relay(config: SpeechRelayConfig) -> SpeechRelay:
    controller = create_controller(config)
    text_session = SocketSession(namespace=config.text_namespace)
    data_session = SocketSession(namespace=config.data_namespace)
    text_stream = TextStreamClient(text_session)
    data = DataUpdatesClient(data_session)

    relay = SpeechRelay(
        speech=controller,
        text_stream=text_stream,
        data=data,
        host=config.host,
        port=config.port,
    )
    text_session.set_status_callback(relay.report_status)
    data_session.set_status_callback(relay.report_status)
    if config.stream_commits:
        controller.set_commit_callback(relay.forward_commit)
    return relay
