"""
HTTP transport construction for the Couchbase REST API.

Builds the httpx.Client injected into CouchbaseClient. In HTTPS mode the
client presents a certificate for authentication and does not verify the
server certificate, since clusters commonly run with self-signed node
certificates.
"""

import logging
import ssl

import httpx

from couchbase_emx.config import Settings
from couchbase_emx.exceptions import TransportConfigError

logger = logging.getLogger(__name__)


def build_ssl_context(cert_path: str | None, key_path: str | None) -> ssl.SSLContext:
    """
    Create a client-certificate SSL context that skips server verification.

    Args:
        cert_path: PEM client certificate (chain).
        key_path: PEM private key for the certificate.

    Raises:
        TransportConfigError: If a path is missing or the pair cannot be loaded.
    """
    if not cert_path or not key_path:
        raise TransportConfigError(
            "HTTPS requires a client certificate and key (CB_CLIENT_CERT / CB_CLIENT_KEY)",
            cert_path=cert_path,
            key_path=key_path,
        )

    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    except (OSError, ssl.SSLError) as e:
        raise TransportConfigError(
            f"Error loading client certificate: {e}",
            cert_path=cert_path,
            key_path=key_path,
        ) from e
    return context


def build_http_client(settings: Settings) -> httpx.Client:
    """
    Create the httpx.Client used for every scrape.

    Args:
        settings: Exporter settings; connection string, timeout and client
            certificate paths are read from it.

    Returns:
        httpx.Client with base_url set to the cluster connection string.

    Raises:
        TransportConfigError: In HTTPS mode when the client certificate
            cannot be loaded.
    """
    base_url = settings.connection_string
    logger.info(f"Couchbase API URL: {base_url}")

    if settings.use_tls:
        verify: ssl.SSLContext | bool = build_ssl_context(
            settings.cb_client_cert, settings.cb_client_key
        )
    else:
        verify = True

    return httpx.Client(
        base_url=base_url,
        timeout=settings.emx_request_timeout,
        verify=verify,
    )
