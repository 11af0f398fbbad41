import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from speech_relay.config import SpeechRelayConfig
from speech_relay.log_format import ColoredFormatter

ENV_FILE_PATH = Path.home() / ".config" / "speech-relay" / "env"


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            value = value.strip().strip("'\"")
            key = key.strip()
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool, log_file: str) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    console = logging.StreamHandler()
    console.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    handlers: list[logging.Handler] = [console]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
        )
        handlers.append(file_handler)
    logging.basicConfig(level=log_level, handlers=handlers)

    if verbose:
        logging.getLogger("websockets").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.INFO)


def main() -> None:
    _load_env_file()
    parser = argparse.ArgumentParser(description="Real-time speech relay")
    parser.add_argument("--host", help="Server host")
    parser.add_argument("--port", type=int, help="Server port")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("config", help="Print the server API configuration")

    args = parser.parse_args()

    config = SpeechRelayConfig()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    _configure_logging(args.verbose, config.log_file)

    if args.command == "config":
        asyncio.run(_show_config(config))
    else:
        asyncio.run(_run_relay(config))


async def _show_config(config: SpeechRelayConfig) -> None:
    from speech_relay.factory import create_config_api

    response = await create_config_api(config).fetch_config()
    if not response.success:
        print(f"Failed to fetch config: {response.error or response.message}", file=sys.stderr)
        sys.exit(1)
    print(response.model_dump_json(indent=2))


async def _run_relay(config: SpeechRelayConfig) -> None:
    from speech_relay.factory import create_relay
    from speech_relay.health import has_critical_failures, run_startup_checks

    results = run_startup_checks(config)
    if has_critical_failures(results):
        logging.error("Critical health check failures, aborting startup")
        sys.exit(1)

    relay = create_relay(config)
    speech = relay.speech

    last_transcription = ""

    def on_state(state) -> None:
        nonlocal last_transcription
        if state.transcription != last_transcription:
            last_transcription = state.transcription
            logging.info("Transcription: %s", state.transcription)
        if state.error:
            logging.error("Speech error: %s", state.error)

    def on_status(message: str | None) -> None:
        if message:
            logging.info("Server: %s", message)

    speech.state.subscribe(on_state)
    relay.add_status_listener(on_status)

    speech.initialize_model()
    if not speech.state.value.is_model_ready:
        sys.exit(1)

    shutdown_event = asyncio.Event()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    relay.connect_text_stream()
    relay.connect_data()

    try:
        if not await speech.start_listening():
            return
        await shutdown_event.wait()
    finally:
        try:
            await asyncio.wait_for(relay.shutdown(), timeout=5.0)
        except asyncio.TimeoutError:
            logging.warning("Shutdown timed out")


if __name__ == "__main__":
    main()
