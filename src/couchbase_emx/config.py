"""Environment-based configuration for the Couchbase metrics exporter."""

import logging

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_SECONDS = 25
DEFAULT_EMX_PORT = 9876

HTTPS_PORT = 18091
HTTP_PORT = 8091


class Settings(BaseSettings):
    """Exporter configuration.

    Field names double as environment variable names (case-insensitive).
    For example:
        CB_HOST=cb-0.cluster.local
        CB_PROTOCOL=HTTP
        CB_CLIENT_CERT=/certs/client.pem
        EMX_PORT=9876
    """

    # Couchbase connection
    cb_protocol: str = "HTTPS"
    cb_host: str = "localhost"
    cb_port: int | None = None  # 18091 for HTTPS, 8091 for HTTP

    # Client certificate presented to Couchbase
    cb_client_cert: str | None = None
    cb_client_key: str | None = None

    # Exporter HTTP(S) server
    emx_port: int = DEFAULT_EMX_PORT
    emx_tls_cert: str | None = None
    emx_tls_key: str | None = None

    emx_request_timeout: float = 10.0
    emx_log_level: str = "INFO"

    # an empty variable counts as unset
    model_config = {"env_ignore_empty": True}

    @field_validator("cb_protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: object) -> str:
        protocol = str(value).upper()
        if protocol not in ("HTTP", "HTTPS"):
            return "HTTPS"
        return protocol

    @property
    def use_tls(self) -> bool:
        return self.cb_protocol == "HTTPS"

    @property
    def port(self) -> int:
        if self.cb_port is not None:
            return self.cb_port
        return HTTPS_PORT if self.use_tls else HTTP_PORT

    @property
    def connection_string(self) -> str:
        """Base URL of the Couchbase REST API, e.g. https://localhost:18091."""
        return f"{self.cb_protocol.lower()}://{self.cb_host}:{self.port}"


class ThrottleSettings(BaseSettings):
    """Scrape throttle threshold, read separately so it can change at runtime."""

    emx_throttle_time: int = DEFAULT_THROTTLE_SECONDS

    model_config = {"env_ignore_empty": True}


def load_throttle_seconds() -> float:
    """
    Read the current throttle threshold from the environment.

    Called on every scrape attempt. An unparsable EMX_THROTTLE_TIME falls
    back to the 25 second default.
    """
    try:
        return float(ThrottleSettings().emx_throttle_time)
    except ValidationError:
        logger.warning(
            f"Invalid EMX_THROTTLE_TIME, using default of {DEFAULT_THROTTLE_SECONDS} seconds"
        )
        return float(DEFAULT_THROTTLE_SECONDS)
