"""
LegacyContentLocator - recognizes and reads legacy-owned file content.

A file identifier's prefix says which store owns the bytes. Identifiers
starting with the legacy prefix (``legacy:`` by default) are still held by
the legacy store; rewriting that prefix into a network scheme yields an
address the bytes can be streamed from.

Example:
    >>> locator = LegacyContentLocator()
    >>> locator.is_legacy("legacy://fcrepo:8080/rest/ab/cd/abcd")
    True
    >>> locator.url_for("legacy://fcrepo:8080/rest/ab/cd/abcd")
    'http://fcrepo:8080/rest/ab/cd/abcd'
    >>>
    >>> async with locator.open(identifier) as chunks:
    ...     async for chunk in chunks:
    ...         tmp.write(chunk)

Read failures (transport errors, non-2xx responses) raise
LegacyContentReadError; they are never swallowed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import BinaryIO

import httpx

from lazymigrate.exceptions import LegacyContentReadError
from lazymigrate.observability import ATTR_FILE_IDENTIFIER, Tracer, create_tracer

logger = logging.getLogger(__name__)

DEFAULT_LEGACY_PREFIX = "legacy:"
DEFAULT_FETCH_SCHEME = "http:"
DEFAULT_CHUNK_SIZE = 64 * 1024


class LegacyContentLocator:
    """
    Prefix predicate plus streaming fetch for legacy-store content.

    Args:
        prefix: Identifier prefix marking legacy ownership
        fetch_scheme: Replacement for the prefix that yields a fetchable URL
        client: Optional shared httpx.AsyncClient (a private one is created
            per fetch otherwise)
        timeout: Request timeout in seconds for private clients
        chunk_size: Bytes per streamed chunk
    """

    def __init__(
        self,
        prefix: str = DEFAULT_LEGACY_PREFIX,
        fetch_scheme: str = DEFAULT_FETCH_SCHEME,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.prefix = prefix
        self.fetch_scheme = fetch_scheme
        self._client = client
        self._timeout = timeout
        self._chunk_size = chunk_size

    def is_legacy(self, file_identifier: str | None) -> bool:
        """True if the identifier is still owned by the legacy store."""
        return bool(file_identifier) and str(file_identifier).startswith(self.prefix)

    def url_for(self, file_identifier: str) -> str:
        """
        Rewrite a legacy identifier into a fetchable address.

        Raises:
            ValueError: If the identifier is not legacy-owned
        """
        if not self.is_legacy(file_identifier):
            raise ValueError(f"Not a legacy file identifier: {file_identifier}")
        return self.fetch_scheme + file_identifier[len(self.prefix) :]

    @asynccontextmanager
    async def open(self, file_identifier: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open a byte stream for a legacy identifier.

        Yields:
            Async iterator over the content's bytes

        Raises:
            ValueError: If the identifier is not legacy-owned
            LegacyContentReadError: On transport errors or non-2xx responses
        """
        url = self.url_for(file_identifier)
        with self._tracer.span(
            "lazymigrate.legacy.open",
            {ATTR_FILE_IDENTIFIER: file_identifier},
        ):
            async with self._client_context() as client:
                try:
                    async with client.stream("GET", url) as response:
                        response.raise_for_status()
                        logger.debug(f"Streaming legacy content from {url}")
                        yield response.aiter_bytes(self._chunk_size)
                except httpx.HTTPStatusError as e:
                    raise LegacyContentReadError(
                        file_identifier,
                        f"HTTP {e.response.status_code} from {url}",
                    ) from e
                except httpx.HTTPError as e:
                    raise LegacyContentReadError(file_identifier, str(e) or type(e).__name__) from e

    async def copy_to(self, file_identifier: str, destination: BinaryIO) -> int:
        """
        Stream legacy content into a writable binary file object.

        Returns:
            Number of bytes written
        """
        written = 0
        async with self.open(file_identifier) as chunks:
            async for chunk in chunks:
                await asyncio.to_thread(destination.write, chunk)
                written += len(chunk)
        return written

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            yield client


__all__ = [
    "LegacyContentLocator",
    "DEFAULT_LEGACY_PREFIX",
    "DEFAULT_FETCH_SCHEME",
]
