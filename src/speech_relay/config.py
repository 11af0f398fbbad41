from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class SpeechRelayConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SPEECH_RELAY_")

    host: str = "192.168.0.106"
    port: int = 4000
    text_namespace: str = "/text-stream"
    data_namespace: str = "/data-updates"

    sample_rate: int = 16000
    min_buffer_bytes: int = 4096
    read_timeout_seconds: float = 0.5
    capture_device: str = ""

    silence_rms_threshold: float = 0.01
    min_interval_ms: int = 1000
    min_silence_duration_ms: int = 500
    max_latency_ms: int = 3000

    model_dir: str = str(Path.home() / ".local" / "share" / "speech-relay" / "sherpa-model")
    encoder_file: str = "encoder-epoch-99-avg-1-chunk-16-left-128.int8.onnx"
    decoder_file: str = "decoder-epoch-99-avg-1-chunk-16-left-128.int8.onnx"
    joiner_file: str = "joiner-epoch-99-avg-1-chunk-16-left-128.int8.onnx"
    tokens_file: str = "tokens.txt"
    recognizer_threads: int = 1

    stream_commits: bool = True
    config_api_timeout_seconds: float = 10.0

    log_file: str = ""

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def model_path(self, filename: str) -> str:
        return str(Path(self.model_dir) / filename)
