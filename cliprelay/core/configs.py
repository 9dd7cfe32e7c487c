"""Configuration management for cliprelay.

Loads settings from ~/.config/cliprelay/config.cfg, then layers a local
.env file and CLIPRELAY_* environment variables on top.
Provides CaptureConfig (capture node) and InferenceConfig (inference node).
"""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from cliprelay.core.address import PeerAddress, local_ipv4
from cliprelay.core.errors import ConfigError
from cliprelay.desktop.hotkey import DEFAULT_HOTKEY, HotkeyCombo
from cliprelay.engines.base import GenerationParams

# Default location for user configuration.
CONFIG_PATH = Path.home() / ".config" / "cliprelay" / "config.cfg"

ENV_PREFIX = "CLIPRELAY_"
SECTIONS = ("CAPTURE", "INFERENCE", "API_KEYS")
SUPPORTED_ENGINES = ("llama", "mistral")

DEFAULT_SERVER = "10.0.0.81:8080"
DEFAULT_RECV_PORT = 9191
DEFAULT_LISTEN_PORT = 8080
DEFAULT_POLL_INTERVAL = 0.001


@dataclass
class CaptureConfig:
    server: PeerAddress
    recv_port: int = DEFAULT_RECV_PORT
    recv_host: Optional[str] = None
    hotkey: HotkeyCombo = HotkeyCombo.parse(DEFAULT_HOTKEY)
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def receive_address(self) -> PeerAddress:
        """Address the capture node listens on for responses."""
        return PeerAddress(self.recv_host or local_ipv4(), self.recv_port)


@dataclass
class InferenceConfig:
    listen_port: int = DEFAULT_LISTEN_PORT
    client_port: int = DEFAULT_RECV_PORT
    listen_host: Optional[str] = None
    engine: str = "llama"
    model_path: Optional[Path] = None
    model: str = "mistral-small-latest"
    api_key: str = ""
    chat_format: Optional[str] = None
    max_tokens: int = GenerationParams.max_tokens
    temperature: float = GenerationParams.temperature
    frequency_penalty: float = GenerationParams.frequency_penalty

    def listen_address(self) -> PeerAddress:
        """Address the inference node listens on for prompts."""
        return PeerAddress(self.listen_host or local_ipv4(), self.listen_port)

    def generation_params(self) -> GenerationParams:
        return GenerationParams(
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            frequency_penalty=self.frequency_penalty,
        )


def load_raw_config(
    path: Path = CONFIG_PATH,
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> Dict[str, str]:
    """
    Load configuration values from the config file and environment.

    Values are returned with lowercase keys for convenience. Precedence,
    lowest first: [DEFAULT] and node sections of the config file, the .env
    file (default: ./.env), then the process environment. Only CLIPRELAY_*
    variables (prefix stripped) and MISTRAL_API_KEY are taken from the
    environment layers.
    """
    cfg = configparser.ConfigParser(interpolation=None)
    data: Dict[str, str] = {}

    if path.exists():
        cfg.read(path)
        data.update({k.lower(): v for k, v in cfg.defaults().items()})
        for section in SECTIONS:
            if cfg.has_section(section):
                data.update({k.lower(): v for k, v in cfg[section].items()})

    env_file = env_file if env_file is not None else Path.cwd() / ".env"
    if env_file.exists():
        data.update(_from_environment(dotenv_values(env_file)))

    data.update(_from_environment(os.environ if environ is None else environ))
    return data


def _from_environment(values: Mapping[str, Optional[str]]) -> Dict[str, str]:
    picked: Dict[str, str] = {}
    for key, value in values.items():
        if value is None:
            continue
        upper = key.upper()
        if upper.startswith(ENV_PREFIX):
            picked[upper[len(ENV_PREFIX):].lower()] = value
        elif upper == "MISTRAL_API_KEY":
            picked["mistral_api_key"] = value
    return picked


def _get_int(raw: Mapping[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigError(f"Setting '{key}' must be an integer, got '{value}'") from None


def _get_float(raw: Mapping[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        raise ConfigError(f"Setting '{key}' must be a number, got '{value}'") from None


def _get_port(raw: Mapping[str, str], key: str, default: int) -> int:
    port = _get_int(raw, key, default)
    if not 0 <= port <= 65535:
        raise ConfigError(f"Setting '{key}' is not a valid port: {port}")
    return port


def _get_optional(raw: Mapping[str, str], key: str) -> Optional[str]:
    value = str(raw.get(key, "") or "").strip()
    return value or None


def get_capture_config(raw: Optional[Mapping[str, str]] = None) -> CaptureConfig:
    """
    Build a CaptureConfig from raw configuration values.

    Raises ConfigError on malformed addresses, ports or hotkey specs.
    """
    raw = load_raw_config() if raw is None else raw

    poll_interval = _get_float(raw, "poll_interval", DEFAULT_POLL_INTERVAL)
    if poll_interval <= 0:
        raise ConfigError(f"poll_interval must be positive, got {poll_interval}")

    return CaptureConfig(
        server=PeerAddress.parse(raw.get("server") or DEFAULT_SERVER),
        recv_port=_get_port(raw, "recv_port", DEFAULT_RECV_PORT),
        recv_host=_get_optional(raw, "recv_host"),
        hotkey=HotkeyCombo.parse(raw.get("hotkey") or DEFAULT_HOTKEY),
        poll_interval=poll_interval,
    )


def get_inference_config(raw: Optional[Mapping[str, str]] = None) -> InferenceConfig:
    """
    Build an InferenceConfig from raw configuration values.

    Raises ConfigError if the engine is unknown, the llama engine has no
    existing model file, or the mistral engine has no API key.
    """
    raw = load_raw_config() if raw is None else raw

    engine = (raw.get("engine") or "llama").strip().lower()
    if engine not in SUPPORTED_ENGINES:
        raise ConfigError(
            f"Unknown engine '{engine}'. Available engines: {', '.join(SUPPORTED_ENGINES)}"
        )

    model_path = _get_optional(raw, "model_path")
    api_key = _get_optional(raw, "mistral_api_key") or ""

    if engine == "llama":
        if not model_path:
            raise ConfigError("Missing 'model_path' for the llama engine.")
        if not Path(model_path).expanduser().is_file():
            raise ConfigError(f"Model file not found: {model_path}")
    elif not api_key:
        raise ConfigError(
            "Missing API key for the mistral engine. Expected key 'mistral_api_key'."
        )

    return InferenceConfig(
        listen_port=_get_port(raw, "listen_port", DEFAULT_LISTEN_PORT),
        client_port=_get_port(raw, "client_port", DEFAULT_RECV_PORT),
        listen_host=_get_optional(raw, "listen_host"),
        engine=engine,
        model_path=Path(model_path).expanduser() if model_path else None,
        model=_get_optional(raw, "model") or "mistral-small-latest",
        api_key=api_key,
        chat_format=_get_optional(raw, "chat_format"),
        max_tokens=_get_int(raw, "max_tokens", GenerationParams.max_tokens),
        temperature=_get_float(raw, "temperature", GenerationParams.temperature),
        frequency_penalty=_get_float(
            raw, "frequency_penalty", GenerationParams.frequency_penalty
        ),
    )
