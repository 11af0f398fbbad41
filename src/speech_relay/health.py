import logging
import urllib.error
import urllib.request
from dataclasses import dataclass

import sounddevice as sd

from speech_relay.config import SpeechRelayConfig
from speech_relay.factory import create_transducer_model

logger = logging.getLogger(__name__)

CRITICAL_CHECKS = {"audio_device", "speech_model"}


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: SpeechRelayConfig) -> list[HealthCheckResult]:
    results = [
        _check_audio_device(config),
        _check_speech_model(config),
        _check_server_reachable(config),
    ]

    passed = sum(1 for r in results if r.passed)
    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    return any(not r.passed and r.name in CRITICAL_CHECKS for r in results)


def _check_audio_device(config: SpeechRelayConfig) -> HealthCheckResult:
    name = "audio_device"
    try:
        if config.capture_device:
            for dev in sd.query_devices():
                if config.capture_device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                    return HealthCheckResult(name=name, passed=True, detail=f"Device '{dev['name']}' found")
        default = sd.query_devices(kind="input")
        return HealthCheckResult(name=name, passed=True, detail=f"Default input: {default['name']}")
    except sd.PortAudioError:
        return HealthCheckResult(name=name, passed=False, detail="No input devices available")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))


def _check_speech_model(config: SpeechRelayConfig) -> HealthCheckResult:
    name = "speech_model"
    missing = create_transducer_model(config).missing_files()
    if missing:
        return HealthCheckResult(name=name, passed=False, detail=f"Missing: {', '.join(missing)}")
    return HealthCheckResult(name=name, passed=True, detail=f"Model files present in {config.model_dir}")


def _check_server_reachable(config: SpeechRelayConfig) -> HealthCheckResult:
    name = "server"
    url = f"{config.base_url}/socket.io/?EIO=4&transport=polling"
    try:
        req = urllib.request.Request(url, method="GET")
        req.add_header("User-Agent", "speech-relay/healthcheck")
        response = urllib.request.urlopen(req, timeout=3)
        return HealthCheckResult(name=name, passed=True, detail=f"Reachable ({response.status})")
    except urllib.error.URLError as exc:
        reason = str(exc.reason) if hasattr(exc, "reason") else str(exc)
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {reason}")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"Unreachable: {exc}")
