"""
Exception classes for the exporter.

Scrape-time failures (transport errors, bad status codes, undecodable
bodies) are never raised: they are logged and reported through
FetchResult. The exceptions here belong to startup, where a broken
configuration should stop the process.
"""


class CouchbaseEMXError(Exception):
    """Base class for exporter errors."""


class TransportConfigError(CouchbaseEMXError):
    """
    Raised when the HTTP transport to Couchbase cannot be configured.

    Typically missing or unreadable client certificate material.

    Attributes:
        cert_path: Client certificate path that was requested, if any
        key_path: Client private key path that was requested, if any
    """

    def __init__(self, message: str, cert_path: str | None = None, key_path: str | None = None) -> None:
        self.cert_path = cert_path
        self.key_path = key_path
        super().__init__(message)
