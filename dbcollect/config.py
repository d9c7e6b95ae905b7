"""Collector configuration loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError
from .tlsconfig import CONNECT_REQUIRED, ConnectionCredentialDetails

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "dbcollect" / "config.toml"

DEFAULT_CALL_TIMEOUT = 10.0


class SessionConfig(BaseModel):
    """Named database session stored in config.toml."""

    name: str
    uri: str
    user: str | None = None
    password: str | None = None
    tls_connect: str = ""
    tls_ca_file: str = ""
    tls_cert_file: str = ""
    tls_key_file: str = ""
    tls_wallet: str = ""
    tls_skip_verify: bool = False

    def credential_details(self) -> ConnectionCredentialDetails:
        """Validate TLS settings and return the matching credential details."""

        if self.tls_wallet or (self.tls_connect and self.tls_connect != CONNECT_REQUIRED):
            if self.tls_ca_file or self.tls_cert_file or self.tls_key_file:
                raise ConfigError(
                    "TLS files cannot be combined with a wallet "
                    f"for database uri {self.uri}, with session {self.name}"
                )
            return ConnectionCredentialDetails.with_wallet(self.name, self.tls_connect, self.tls_wallet, self.uri)
        return ConnectionCredentialDetails.with_files(
            self.name,
            self.tls_connect,
            self.tls_ca_file,
            self.tls_cert_file,
            self.tls_key_file,
            self.uri,
        )


class AppConfig(BaseModel):
    """Shape of the collector configuration file."""

    custom_queries_path: str | None = None
    call_timeout: float = Field(default=DEFAULT_CALL_TIMEOUT, gt=0)
    sessions: dict[str, SessionConfig] = Field(default_factory=dict)

    def session(self, name: str) -> SessionConfig:
        """Return the named session or raise ``ConfigError``."""

        try:
            return self.sessions[name]
        except KeyError:
            known = ", ".join(sorted(self.sessions)) or "none"
            raise ConfigError(f"Unknown session '{name}' (configured: {known})") from None


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing or unreadable."""

    config_path = path or CONFIG_FILE
    try:
        data = _read_config_file(config_path)
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable config file", extra={"path": str(config_path)}, exc_info=True)
        return AppConfig()

    try:
        return AppConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{config_path}': {exc}") from exc


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    queries_path = raw.get("custom_queries_path")
    if isinstance(queries_path, str):
        data["custom_queries_path"] = queries_path
    timeout = raw.get("call_timeout")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
        data["call_timeout"] = float(timeout)
    sessions = raw.get("sessions")
    if isinstance(sessions, dict):
        parsed_sessions: dict[str, dict[str, object]] = {}
        for name, session in sessions.items():
            if not isinstance(session, dict):
                continue
            parsed_sessions[str(name)] = {**session, "name": str(name)}
        data["sessions"] = parsed_sessions
    return data


__all__ = ["AppConfig", "CONFIG_FILE", "SessionConfig", "load_config"]
