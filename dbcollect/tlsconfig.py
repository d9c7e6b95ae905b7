"""TLS session configuration built from file-based credential material."""

from __future__ import annotations

import logging
import re
import socket
import ssl
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError, CredentialIOError, CredentialParseError

LOG = logging.getLogger(__name__)

CONNECT_REQUIRED = "required"

_PEM_CERTIFICATE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----",
    re.DOTALL,
)


@dataclass(frozen=True, slots=True)
class ConnectionCredentialDetails:
    """Credential paths and connection metadata for a single session."""

    session_name: str
    tls_connect: str = ""
    tls_ca_file: str = ""
    tls_cert_file: str = ""
    tls_key_file: str = ""
    tls_wallet: str = ""
    raw_uri: str = ""

    @classmethod
    def with_wallet(cls, session: str, connect_mode: str, wallet: str, uri: str) -> ConnectionCredentialDetails:
        """Validate the wallet/connect-mode pairing and build the details."""

        if connect_mode and connect_mode != CONNECT_REQUIRED:
            if not wallet:
                raise ConfigError(
                    f"missing wallet folder path for database uri {uri}, with session {session}"
                )
        elif wallet:
            raise ConfigError(
                "wallet folder configuration parameter set without wallet being used "
                f"for database uri {uri}, with session {session}"
            )
        return cls(
            session_name=session,
            tls_connect=connect_mode,
            tls_wallet=wallet,
            raw_uri=uri,
        )

    @classmethod
    def with_files(
        cls,
        session: str,
        connect_mode: str,
        ca_file: str,
        cert_file: str,
        key_file: str,
        uri: str,
    ) -> ConnectionCredentialDetails:
        """Build details for explicit CA/certificate/key files."""

        files = (ca_file, cert_file, key_file)
        if any(files) and not all(files):
            raise ConfigError(
                "TLS CA, certificate and key files must be set together "
                f"for database uri {uri}, with session {session}"
            )
        return cls(
            session_name=session,
            tls_connect=connect_mode,
            tls_ca_file=ca_file,
            tls_cert_file=cert_file,
            tls_key_file=key_file,
            raw_uri=uri,
        )

    @property
    def uses_wallet(self) -> bool:
        return bool(self.tls_wallet)

    @property
    def has_tls_files(self) -> bool:
        return bool(self.tls_ca_file and self.tls_cert_file and self.tls_key_file)


@dataclass(frozen=True, slots=True)
class ClientCertificate:
    """Client certificate/key pair presented during the handshake."""

    cert_file: str
    key_file: str


@dataclass(frozen=True, slots=True)
class TLSSessionConfig:
    """Immutable TLS settings handed to the connection layer."""

    context: ssl.SSLContext
    ca_certificates: tuple[str, ...]
    certificates: tuple[ClientCertificate, ...]
    skip_verify: bool
    server_name: str | None = None

    def wrap_socket(self, sock: socket.socket) -> ssl.SSLSocket:
        """Wrap a connected socket, validating the peer against ``server_name``."""

        return self.context.wrap_socket(sock, server_hostname=self.server_name)


def create_details(
    session: str,
    connect_mode: str,
    ca_file: str,
    cert_file: str,
    key_file: str,
    uri: str,
) -> ConnectionCredentialDetails:
    return ConnectionCredentialDetails.with_files(session, connect_mode, ca_file, cert_file, key_file, uri)


def create_details_with_wallet(session: str, connect_mode: str, wallet: str, uri: str) -> ConnectionCredentialDetails:
    return ConnectionCredentialDetails.with_wallet(session, connect_mode, wallet, uri)


def create_tls_config(details: ConnectionCredentialDetails, skip_verify: bool) -> TLSSessionConfig:
    """Assemble a mutual-TLS configuration from the credential files in ``details``.

    The trust pool must end up with at least one certificate; a bundle that
    yields none is rejected rather than producing a context that trusts nothing.
    When ``skip_verify`` is false the peer is validated against ``details.raw_uri``.
    """

    try:
        pem = Path(details.tls_ca_file).read_bytes().decode("latin-1")
    except OSError as exc:
        raise CredentialIOError(f"Failed to read CA file '{details.tls_ca_file}': {exc}") from exc

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    accepted = _append_certs_from_pem(context, pem)
    if not accepted:
        raise CredentialParseError(f"no valid certificates found in CA file '{details.tls_ca_file}'")

    try:
        context.load_cert_chain(certfile=details.tls_cert_file, keyfile=details.tls_key_file)
    except ssl.SSLError as exc:
        raise CredentialParseError(
            f"Failed to load client key pair '{details.tls_cert_file}', '{details.tls_key_file}': {exc}"
        ) from exc
    except OSError as exc:
        raise CredentialIOError(
            f"Failed to read client key pair '{details.tls_cert_file}', '{details.tls_key_file}': {exc}"
        ) from exc

    certificates = (ClientCertificate(cert_file=details.tls_cert_file, key_file=details.tls_key_file),)

    if skip_verify:
        # check_hostname must be cleared before verify_mode can drop to CERT_NONE.
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return TLSSessionConfig(
            context=context,
            ca_certificates=accepted,
            certificates=certificates,
            skip_verify=True,
        )

    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    return TLSSessionConfig(
        context=context,
        ca_certificates=accepted,
        certificates=certificates,
        skip_verify=False,
        server_name=details.raw_uri,
    )


def _append_certs_from_pem(context: ssl.SSLContext, pem: str) -> tuple[str, ...]:
    accepted: list[str] = []
    for match in _PEM_CERTIFICATE.finditer(pem):
        block = match.group(0)
        try:
            context.load_verify_locations(cadata=block)
        except (ssl.SSLError, ValueError) as exc:
            LOG.debug("Skipping malformed PEM block", extra={"error": str(exc)})
            continue
        accepted.append(block)
    return tuple(accepted)


__all__ = [
    "CONNECT_REQUIRED",
    "ClientCertificate",
    "ConnectionCredentialDetails",
    "TLSSessionConfig",
    "create_details",
    "create_details_with_wallet",
    "create_tls_config",
]
