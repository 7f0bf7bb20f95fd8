"""
Couchbase REST API client for cluster state observation.

This module provides the CouchbaseClient class, which issues one GET per
endpoint and decodes the body into a Pydantic response model.

CouchbaseClient receives an injected httpx.Client with base_url set to the
Couchbase connection string. Unlike a typical API client it never raises
on scrape-time failures: the exporter prefers a partially populated
snapshot to no metrics at all. Each call instead returns a FetchResult
whose outcome says how far the request got.

Couchbase REST API Documentation:
- https://docs.couchbase.com/server/current/rest-api/rest-intro.html
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from couchbase_emx.types import DROPPED_FIELDS

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class FetchOutcome(str, Enum):
    """How far a single endpoint request got."""

    SUCCESS = "success"
    """2xx response with a body that decoded cleanly."""

    PARTIAL = "partial"
    """Non-2xx response, or some fields reset to defaults; the rest decoded."""

    FAILED = "failed"
    """Transport error or undecodable body; the value is all defaults."""


@dataclass(frozen=True)
class FetchResult(Generic[ModelT]):
    """
    Decoded endpoint response plus the outcome of the request.

    Attributes:
        value: Decoded model; the model's default instance on failure.
        outcome: SUCCESS, PARTIAL or FAILED.
        status_code: HTTP status, None if no response was received.
        error: Description of what went wrong, None on success.
    """

    value: ModelT
    outcome: FetchOutcome
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCESS


@dataclass
class CouchbaseClient:
    """
    Couchbase REST API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.Client with base_url set to the cluster,
            e.g. https://cb-0.local:18091, and the client certificate loaded.

    Example:
        with httpx.Client(base_url="http://localhost:8091") as http:
            client = CouchbaseClient(http=http)
            result = client.fetch("/pools", PoolsResponse)
            print(result.outcome, result.value.uuid)
    """

    http: httpx.Client

    def fetch(self, path: str, model: type[ModelT]) -> FetchResult[ModelT]:
        """
        GET a single endpoint and decode its JSON body into model.

        Exactly one attempt is made. Non-2xx responses are logged (with
        dedicated messages for 401 and 403) and their body is still decoded
        best-effort. Decoding is per field: a field with an unexpected value
        keeps its default and the rest of the body is used.

        Args:
            path: Endpoint path relative to the base URL, e.g. "/indexStatus".
            model: Pydantic model matching the endpoint's JSON shape. It must
                be constructible without arguments.

        Returns:
            FetchResult with the decoded value and outcome.
        """
        try:
            response = self.http.get(path)
        except httpx.HTTPError as e:
            logger.error(f"Request to {path} failed: {e!r}")
            return FetchResult(value=model(), outcome=FetchOutcome.FAILED, error=str(e))

        status = response.status_code
        if response.is_success:
            logger.debug(f"Request to {path} was successful. Status code={status}")
        elif status == httpx.codes.UNAUTHORIZED:
            logger.error(f"Unauthorized access from {path}. Status code={status}")
        elif status == httpx.codes.FORBIDDEN:
            logger.error(f"Access forbidden (403) from {path}. Status code={status}")
        else:
            logger.error(f"Unexpected status code when calling {path}. Status code={status}")

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Failed to decode response from {path}: {e}")
            return FetchResult(
                value=model(),
                outcome=FetchOutcome.FAILED,
                status_code=status,
                error=str(e),
            )

        context: dict[str, list[str]] = {DROPPED_FIELDS: []}
        try:
            value = model.model_validate(payload, context=context)
        except ValidationError as e:
            logger.error(
                f"Failed to decode response from {path}: {e.error_count()} error(s), "
                f"first: {e.errors()[0]['msg']}"
            )
            return FetchResult(
                value=model(),
                outcome=FetchOutcome.FAILED,
                status_code=status,
                error=str(e),
            )

        dropped = context[DROPPED_FIELDS]
        if dropped:
            logger.error(
                f"Ignored {len(dropped)} undecodable field(s) from {path}: {', '.join(dropped)}"
            )

        if response.is_success and not dropped:
            return FetchResult(value=value, outcome=FetchOutcome.SUCCESS, status_code=status)
        error = f"HTTP {status}" if not response.is_success else f"undecodable fields: {', '.join(dropped)}"
        return FetchResult(
            value=value,
            outcome=FetchOutcome.PARTIAL,
            status_code=status,
            error=error,
        )
