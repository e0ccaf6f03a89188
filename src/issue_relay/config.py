"""Runtime settings for the relay process.

Tracker connections, channels and mappings live in the YAML config
(``config_schema``). This module resolves the process-level knobs: where
state is kept, the Discord public key, the trigger secret, timeouts and the
HTTP bind address.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML ``relay`` section > defaults

Environment variables:
    RELAY_STATE_DIR: Directory for cache.json and operations.jsonl
        (default: .issue_relay/state)
    DISCORD_PUBLIC_KEY: Hex Ed25519 key used to verify interaction callbacks
    RELAY_CRON_SECRET: Bearer secret required by /sync/run and /cron/sync
    RELAY_REQUEST_TIMEOUT: Per-call adapter deadline in seconds (default: 30)
    RELAY_MAX_PARALLEL_REQUESTS: Concurrent adapter calls per run (default: 4)
    RELAY_HOST / RELAY_PORT: HTTP bind address (default: 127.0.0.1:8080)
    RELAY_DEBUG: Enable debug logging
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".issue_relay/state"


@dataclass
class Config:
    state_dir: Path
    public_key: str | None = None
    cron_secret: str | None = None
    request_timeout: float = 30.0
    max_parallel_requests: int = 4
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid."""
    if config.public_key is not None:
        config.public_key = config.public_key.strip()
        try:
            key = bytes.fromhex(config.public_key)
        except ValueError:
            raise ValueError(
                "Invalid DISCORD_PUBLIC_KEY: must be a hex string"
            ) from None
        if len(key) != 32:
            raise ValueError(
                "Invalid DISCORD_PUBLIC_KEY: expected 32 bytes (64 hex characters)"
            )

    if config.request_timeout <= 0:
        raise ValueError(
            f"Invalid request timeout {config.request_timeout}: must be positive"
        )

    if not (1 <= config.max_parallel_requests <= 64):
        raise ValueError(
            f"Invalid max_parallel_requests {config.max_parallel_requests}: "
            "must be a number between 1 and 64"
        )

    if not (1 <= config.port <= 65535):
        raise ValueError(f"Invalid port {config.port}")

    if config.public_key is None:
        logger.warning(
            "DISCORD_PUBLIC_KEY is not set; interaction callbacks will be rejected"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, kind: type, fallback):
    raw = os.getenv(key)
    if raw is None:
        return fallback
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"Invalid {key} '{raw}': must be a number") from None


def load_config(
    state_dir: str | None = None,
    host: str | None = None,
    port: int | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load runtime configuration with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` first so that
    .env values are visible through ``os.getenv()``.

    Args:
        state_dir: CLI override for the state directory.
        host: CLI override for the bind host.
        port: CLI override for the bind port.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Non-None values from the YAML ``relay`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed.
    """
    fb = yaml_fallbacks or {}

    final_state_dir = (
        state_dir
        or os.getenv("RELAY_STATE_DIR")
        or fb.get("state_dir")
        or DEFAULT_STATE_DIR
    )
    public_key = os.getenv("DISCORD_PUBLIC_KEY") or fb.get("public_key")
    cron_secret = os.getenv("RELAY_CRON_SECRET") or fb.get("cron_secret")

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("RELAY_DEBUG")
        final_debug = (
            env_debug if env_debug is not None else bool(fb.get("debug", False))
        )

    config = Config(
        state_dir=Path(final_state_dir).expanduser(),
        public_key=public_key or None,
        cron_secret=cron_secret or None,
        request_timeout=float(
            _get_number_env(
                "RELAY_REQUEST_TIMEOUT", float, fb.get("request_timeout", 30.0)
            )
        ),
        max_parallel_requests=int(
            _get_number_env(
                "RELAY_MAX_PARALLEL_REQUESTS",
                int,
                fb.get("max_parallel_requests", 4),
            )
        ),
        host=host or os.getenv("RELAY_HOST") or fb.get("host") or "127.0.0.1",
        port=int(
            port
            if port is not None
            else _get_number_env("RELAY_PORT", int, fb.get("port", 8080))
        ),
        debug=final_debug,
    )

    validate_config(config)
    return config
