"""
Config loader for askbridge.
Reads config.yaml once at startup, resolves ${ENV_VAR} placeholders, then
applies the plain environment overrides (HOST, PORT, MAX_HISTORY, ...).
The result is frozen into a ServerConfig that gets passed around explicitly.
"""

import math
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000
DEFAULT_MAX_HISTORY = 50
DEFAULT_TTL_SECONDS = 3600
DEFAULT_PURGE_INTERVAL_SECONDS = 60
DEFAULT_CODEX_COMMAND = "codex"
DEFAULT_CLAUDE_COMMAND = "claude"
DEFAULT_CLAUDE_MODEL = "sonnet"
DEFAULT_CODEX_DISABLED_MCP = ("serena", "chrome-devtools", "playwright")
DEFAULT_TIMEOUT_MS = 300_000


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def load_config(path: Path | None = None) -> dict:
    """Load and cache config from YAML file. A missing file means all defaults."""
    global _config
    if _config is not None:
        return _config

    config_path = path or _CONFIG_PATH
    if not config_path.exists():
        _config = {}
        return _config

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = _walk_and_resolve(raw)
    return _config


def get_config() -> dict:
    """Return cached base config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the file."""
    global _config
    _config = None


# ---------------------------------------------------------------------------
# Typed view
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ServerConfig:
    """Everything the server needs, resolved from YAML + environment."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_history: int = DEFAULT_MAX_HISTORY
    conversation_ttl_seconds: float = DEFAULT_TTL_SECONDS
    purge_interval_seconds: float = DEFAULT_PURGE_INTERVAL_SECONDS
    codex_command: str = DEFAULT_CODEX_COMMAND
    claude_command: str = DEFAULT_CLAUDE_COMMAND
    claude_model: str = DEFAULT_CLAUDE_MODEL
    codex_disabled_mcp_servers: tuple[str, ...] = DEFAULT_CODEX_DISABLED_MCP
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    codex_fallback: bool = True
    claude_fallback: bool = False
    log_level: str = "INFO"
    log_file: str | None = None


def _parse_number(value, fallback):
    """Positive finite number or the fallback. Accepts str/int/float."""
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return fallback
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed) or parsed <= 0:
        return fallback
    return int(parsed) if isinstance(fallback, int) else parsed


def _parse_list(value, fallback: tuple[str, ...]) -> tuple[str, ...]:
    """Comma string or list → de-duplicated tuple, order kept."""
    if value is None:
        return fallback
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        return fallback

    seen: list[str] = []
    for item in items:
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return tuple(seen) if seen else fallback


def _env_str(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_server_config(cfg: dict | None = None, env: Mapping[str, str] | None = None) -> ServerConfig:
    """
    Build a ServerConfig. Precedence: environment > config.yaml > defaults.
    Both inputs are injectable so tests never touch the real file/env.
    """
    cfg = get_config() if cfg is None else cfg
    env = os.environ if env is None else env

    server_cfg = cfg.get("server", {}) or {}
    conv_cfg = cfg.get("conversations", {}) or {}
    backends_cfg = cfg.get("backends", {}) or {}
    codex_cfg = backends_cfg.get("codex", {}) or {}
    claude_cfg = backends_cfg.get("claude", {}) or {}
    log_cfg = cfg.get("logging", {}) or {}

    host = _env_str(env, "HOST") or (str(server_cfg.get("host") or "").strip() or DEFAULT_HOST)
    port = _parse_number(env.get("PORT"), _parse_number(server_cfg.get("port"), DEFAULT_PORT))
    max_history = _parse_number(
        env.get("MAX_HISTORY"),
        _parse_number(conv_cfg.get("max_history"), DEFAULT_MAX_HISTORY),
    )
    ttl = _parse_number(
        env.get("CONVERSATION_TTL_SECONDS"),
        _parse_number(conv_cfg.get("ttl_seconds"), float(DEFAULT_TTL_SECONDS)),
    )
    purge_interval = _parse_number(
        conv_cfg.get("purge_interval_seconds"), float(DEFAULT_PURGE_INTERVAL_SECONDS)
    )

    codex_command = _env_str(env, "CODEX_CMD") or (str(codex_cfg.get("command") or "").strip() or DEFAULT_CODEX_COMMAND)
    claude_command = _env_str(env, "CLAUDE_CMD") or (str(claude_cfg.get("command") or "").strip() or DEFAULT_CLAUDE_COMMAND)
    claude_model = _env_str(env, "CLAUDE_MODEL") or (str(claude_cfg.get("model") or "").strip() or DEFAULT_CLAUDE_MODEL)

    disabled_mcp = _parse_list(
        _env_str(env, "CODEX_DISABLED_MCP_SERVERS"),
        _parse_list(codex_cfg.get("disabled_mcp_servers"), DEFAULT_CODEX_DISABLED_MCP),
    )

    timeout_ms = _parse_number(backends_cfg.get("timeout_ms"), DEFAULT_TIMEOUT_MS)

    return ServerConfig(
        host=host,
        port=port,
        max_history=max_history,
        conversation_ttl_seconds=ttl,
        purge_interval_seconds=purge_interval,
        codex_command=codex_command,
        claude_command=claude_command,
        claude_model=claude_model,
        codex_disabled_mcp_servers=disabled_mcp,
        timeout_ms=timeout_ms,
        codex_fallback=bool(codex_cfg.get("fallback", True)),
        claude_fallback=bool(claude_cfg.get("fallback", False)),
        log_level=str(log_cfg.get("level", "INFO")),
        log_file=log_cfg.get("file") or None,
    )
