"""Shared configuration loader for lnctl."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".lnctl.yaml"
DEFAULT_LND_DIR = Path.home() / ".lnd"
DEFAULT_TLS_CERT_PATH = DEFAULT_LND_DIR / "tls.cert"
DEFAULT_MACAROON_PATH = DEFAULT_LND_DIR / "data" / "chain" / "bitcoin" / "mainnet" / "admin.macaroon"
DEFAULT_REST_PORT = 8080
DEFAULT_OUTPUT_PATH = Path("graph.svg")
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass
class LNDConfig:
    """Connection details for an lnd REST endpoint."""

    host: str = "localhost"
    port: int = DEFAULT_REST_PORT
    use_https: bool = True
    tls_cert_path: Path | None = None
    macaroon_path: Path | None = None
    connect_timeout: float = 10.0

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"

    def macaroon_hex(self) -> str | None:
        """Return the macaroon as hex, or ``None`` when no macaroon is configured."""

        if self.macaroon_path is None:
            return None
        try:
            return self.macaroon_path.read_bytes().hex()
        except OSError as exc:
            raise ConfigurationError(
                f"Unable to read macaroon {self.macaroon_path}: {exc}"
            ) from exc


@dataclass
class RenderConfig:
    """Settings for the describegraph rendering pipeline."""

    output_path: Path = DEFAULT_OUTPUT_PATH
    layout_command: str = "dot"
    viewer_command: str = "open" if sys.platform == "darwin" else "xdg-open"


def set_default_config_path(path: str | Path | None) -> None:
    """Remember a user-supplied config path for future loads."""

    global _CONFIG_PATH_OVERRIDE
    _CONFIG_PATH_OVERRIDE = Path(path).expanduser() if path else None


def _resolve_path(config_path: str | Path | None) -> tuple[Path, bool]:
    explicit = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    if config_path is not None:
        return Path(config_path).expanduser(), explicit
    return _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH, explicit


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_port(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        port = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {source}: {raw}") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range in {source}: {raw}")
    return port


def _coerce_path(raw: Any) -> Path | None:
    if raw is None or raw == "":
        return None
    return Path(str(raw)).expanduser()


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _env(env_map: Mapping[str, str], name: str) -> str | None:
    return env_map.get(f"LND_{name}") or env_map.get(f"LNCTL_LND_{name}")


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    """Split ``https://host:port`` or bare ``host:port`` (lncli's --rpcserver form)."""

    if not raw:
        return None, None, None
    parsed = urlparse(raw if "://" in raw else f"//{raw}")
    if not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint: {raw}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in RPC endpoint: {raw}") from exc
    use_https = parsed.scheme.lower() == "https" if parsed.scheme else None
    return parsed.hostname, port, use_https


def load_lnd_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LNDConfig:
    """Load lnd connection settings from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    lnd_section = _section(file_config, "lnd", path)
    override_map = dict(overrides or {})

    override_host, override_port, override_https = _parse_endpoint(override_map.get("endpoint"))
    env_host, env_port, env_https = _parse_endpoint(_env(env_map, "REST_ENDPOINT"))
    file_host, file_port, file_https = _parse_endpoint(lnd_section.get("endpoint"))

    # Each source's endpoint URL ranks alongside that source's own fields.
    resolved_host = _first_value(
        override_host,
        override_map.get("host"),
        env_host,
        _env(env_map, "REST_HOST"),
        file_host,
        lnd_section.get("host"),
        "localhost",
    )
    resolved_port = _first_value(
        override_port,
        _coerce_port(override_map.get("port"), source="overrides"),
        env_port,
        _coerce_port(_env(env_map, "REST_PORT"), source="environment"),
        file_port,
        _coerce_port(lnd_section.get("port"), source=f"{path} lnd.port"),
        DEFAULT_REST_PORT,
    )
    resolved_use_https = _first_value(
        override_https,
        _coerce_bool(override_map.get("use_https")),
        env_https,
        _coerce_bool(_env(env_map, "REST_USE_HTTPS")),
        file_https,
        _coerce_bool(lnd_section.get("use_https")),
        True,
    )

    tls_cert_path = _coerce_path(
        _first_value(
            override_map.get("tls_cert_path"),
            _env(env_map, "TLS_CERT_PATH"),
            lnd_section.get("tls_cert_path"),
        )
    )
    if tls_cert_path is None and DEFAULT_TLS_CERT_PATH.exists():
        tls_cert_path = DEFAULT_TLS_CERT_PATH

    macaroon_path = _coerce_path(
        _first_value(
            override_map.get("macaroon_path"),
            _env(env_map, "MACAROON_PATH"),
            lnd_section.get("macaroon_path"),
        )
    )
    if macaroon_path is None and DEFAULT_MACAROON_PATH.exists():
        macaroon_path = DEFAULT_MACAROON_PATH

    raw_timeout = _first_value(override_map.get("connect_timeout"), lnd_section.get("connect_timeout"), 10.0)
    try:
        connect_timeout = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid connect_timeout: {raw_timeout}") from exc

    return LNDConfig(
        host=resolved_host,
        port=resolved_port,
        use_https=bool(resolved_use_https),
        tls_cert_path=tls_cert_path,
        macaroon_path=macaroon_path,
        connect_timeout=connect_timeout,
    )


def load_render_config(
    *,
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RenderConfig:
    """Load the ``render`` section, letting CLI overrides win."""

    path, explicit_path = _resolve_path(config_path)
    file_config = _load_config_file(path, required=explicit_path)
    render_section = _section(file_config, "render", path)
    override_map = dict(overrides or {})
    defaults = RenderConfig()

    output_path = _coerce_path(
        _first_value(override_map.get("output_path"), render_section.get("output_path"))
    )
    return RenderConfig(
        output_path=output_path or defaults.output_path,
        layout_command=_first_value(
            override_map.get("layout_command"),
            render_section.get("layout_command"),
            defaults.layout_command,
        ),
        viewer_command=_first_value(
            override_map.get("viewer_command"),
            render_section.get("viewer_command"),
            defaults.viewer_command,
        ),
    )
