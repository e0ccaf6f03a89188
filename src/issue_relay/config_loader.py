"""
Hierarchical configuration loader for issue_relay.

Provides convention-based config file discovery, YAML !include support,
env var interpolation, and hierarchical merge with "project wins" semantics.
Credentials are usually kept out of the file and pulled in with
``${NOTION_API_KEY}`` style references.

Usage:
    from issue_relay.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ISSUE_RELAY_CONFIG"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader subclass with ``!include``; the global SafeLoader is untouched."""


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Handle ``!include path/to/file.yml`` (paths relative to the including file)."""
    raw: str = loader.construct_scalar(node)
    include_path = Path(raw)
    if not include_path.is_absolute():
        include_path = Path(loader.name).resolve().parent / include_path
    include_path = include_path.resolve()

    stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in stack:
        chain = " -> ".join(str(p) for p in [*stack, include_path])
        raise ValueError(f"Circular include detected: {chain}")
    if not include_path.exists():
        raise FileNotFoundError(
            f"Include file not found: {include_path} "
            f"(referenced from {Path(loader.name).resolve()})"
        )
    return _load_yaml(include_path, _include_stack=[*stack, include_path])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml(path: Path, *, _include_stack: list[Path] | None = None) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Discovery and bootstrapping
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``ISSUE_RELAY_CONFIG`` env var (explicit single path)
        2. ``.issue_relay/config.yml`` in CWD
        3. ``.issue_relay/config.yaml`` in CWD
        4. ``~/.config/issue_relay/config.yml``
    """
    candidates: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / ".issue_relay" / "config.yml")
    candidates.append(cwd / ".issue_relay" / "config.yaml")
    candidates.append(Path.home() / ".config" / "issue_relay" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# issue-relay configuration
#
# Secrets are best supplied through environment variables (or a .env file)
# and referenced here with ${VAR} / ${VAR:-default}.
#
# trackers:
#   - id: bugs
#     name: Bug tracker
#     api_key: ${NOTION_API_KEY}
#     database_id: ${NOTION_DATABASE_ID}
#     status_property: status
#     open_value: open
#     resolved_value: resolved
#
# channels:
#   - id: triage
#     name: "#triage"
#     bot_token: ${DISCORD_BOT_TOKEN}
#     channel_id: "123456789012345678"
#
# mappings:
#   - id: bugs-to-triage
#     tracker: bugs
#     channel: triage
#     project_filter: all
#
# relay:
#   state_dir: .issue_relay/state
#   public_key: ${DISCORD_PUBLIC_KEY}
#   cron_secret: ${RELAY_CRON_SECRET:-}
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config path, or the default project-level path."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / ".issue_relay" / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, writing a commented starter file if needed.

    Returns:
        Path to the config file (existing or newly created).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are loaded from lowest precedence to highest; each file's
    top-level keys replace those from earlier files. Env var interpolation
    runs after the merge. Returns an empty dict when no file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
