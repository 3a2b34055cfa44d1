"""
Web page fetcher used by the audit workers.

A single aiohttp session is shared by every worker; each call to fetch()
performs one GET, follows redirects with aiohttp's default policy and is
bounded by a per-job deadline on top of the session's socket timeouts.
"""

import asyncio
import aiohttp
import io
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
from aiohttp import ClientSession, ClientTimeout, ClientError, InvalidURL, ServerTimeoutError

from .detector import ROBOTS_HEADER


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; RobotsAudit/1.0; +https://example.com)"


class ErrorKind(Enum):
    """Job-local failure categories."""
    REQUEST = 'request'
    TRANSPORT = 'transport'
    PARSE = 'parse'
    UNEXPECTED = 'unexpected'


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int = 0
    header_values: List[str] = field(default_factory=list)
    body: Optional[bytes] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    fetch_time: float = 0.0
    final_url: Optional[str] = None
    body_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def headers_received(self) -> bool:
        return self.status_code > 0

    def body_stream(self):
        """The body as a binary stream; reading it fails if the body was cut short."""
        if self.body_error is not None:
            return UnreadableBody(self.body_error)
        return io.BytesIO(self.body or b"")


class UnreadableBody(io.RawIOBase):
    """Stands in for a response body that could not be read in full."""

    def __init__(self, reason: str):
        super().__init__()
        self.reason = reason

    def readable(self):
        return True

    def read(self, size=-1):
        raise OSError(self.reason)


class WebFetcher:
    """
    Fetches pages for directive inspection.

    The session is configured once in start() and used read-only afterwards,
    so it can be shared by any number of concurrent workers.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, transport_timeout: float = 20,
                 job_timeout: float = 25, max_connections: int = 100):
        if job_timeout < transport_timeout:
            raise ValueError("job_timeout must not be shorter than transport_timeout")

        self.user_agent = user_agent
        self.transport_timeout = transport_timeout
        self.job_timeout = job_timeout
        self.max_connections = max_connections

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the shared session."""
        if self.session is None:
            timeout = ClientTimeout(
                total=None,
                sock_connect=self.transport_timeout,
                sock_read=self.transport_timeout
            )
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the shared session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with every X-Robots-Tag value and the raw body. When
            the request fails before any response, error is set; when the
            body fails after the headers arrived, body_error is set instead
        """
        if self.session is None:
            raise RuntimeError("WebFetcher.start() must be called before fetch()")

        start_time = time.monotonic()
        self.stats['total_requests'] += 1
        result = FetchResult(url=url)

        try:
            await asyncio.wait_for(self._get(result), timeout=self.job_timeout)
            result.fetch_time = time.monotonic() - start_time

            self.stats['successful_requests'] += 1
            self.stats['total_bytes_downloaded'] += len(result.body)
            self.logger.debug(f"Fetched {url}: {result.status_code} ({len(result.body)} bytes)")
            return result

        except ServerTimeoutError as e:
            error_kind = ErrorKind.TRANSPORT
            error_msg = f"Transport timeout after {self.transport_timeout:g}s"
            self.logger.warning(f"Socket timeout fetching {url}: {_describe(e)}")

        except asyncio.TimeoutError:
            error_kind = ErrorKind.TRANSPORT
            error_msg = f"Request timeout after {self.job_timeout:g}s"
            self.logger.warning(f"Timeout fetching {url}")

        except (InvalidURL, ValueError) as e:
            error_kind = ErrorKind.REQUEST
            error_msg = f"Invalid request: {e}"
            self.logger.warning(f"Invalid request for {url}: {e}")

        except ClientError as e:
            error_kind = ErrorKind.TRANSPORT
            error_msg = f"Client error: {_describe(e)}"
            self.logger.warning(f"Client error fetching {url}: {_describe(e)}")

        self.stats['failed_requests'] += 1

        if result.headers_received:
            # Headers already arrived; the detector still sees them
            result.body = None
            result.body_error = error_msg
            result.fetch_time = time.monotonic() - start_time
            return result

        return FetchResult(
            url=url,
            error=error_msg,
            error_kind=error_kind,
            fetch_time=time.monotonic() - start_time
        )

    async def _get(self, result: FetchResult):
        async with self.session.get(result.url) as response:
            result.header_values = list(response.headers.getall(ROBOTS_HEADER, []))
            result.final_url = str(response.url)
            result.status_code = response.status
            result.body = await response.read()

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()


def _describe(error: Exception) -> str:
    # Some aiohttp errors stringify to an empty message
    return str(error) or error.__class__.__name__
