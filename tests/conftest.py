"""
Shared pytest fixtures for the robots audit tests.
"""

import asyncio
from typing import Dict, List

import pytest
from openpyxl import Workbook

from robots_audit.audit.fetcher import ErrorKind, FetchResult


CLEAN_PAGE = b"<html><head></head><body></body></html>"


class StubFetcher:
    """
    Deterministic stand-in for WebFetcher.

    Responses are keyed by URL; unknown URLs fail like a refused connection.
    """

    def __init__(self, pages: Dict[str, FetchResult], delays: Dict[str, float] = None):
        self.pages = pages
        self.delays = delays or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        await asyncio.sleep(self.delays.get(url, 0))
        if url in self.pages:
            return self.pages[url]
        return FetchResult(
            url=url,
            error="Client error: Cannot connect to host",
            error_kind=ErrorKind.TRANSPORT
        )


def page(url: str, body: bytes = CLEAN_PAGE, header_values=None, status_code: int = 200) -> FetchResult:
    return FetchResult(
        url=url,
        status_code=status_code,
        header_values=list(header_values or []),
        body=body,
        final_url=url
    )


@pytest.fixture
def stub_pages() -> Dict[str, FetchResult]:
    """A mix of clean, excluded and broken pages."""
    return {
        "https://example.com/": page("https://example.com/"),
        "https://example.com/private": page(
            "https://example.com/private",
            header_values=["noindex"]
        ),
        "https://example.com/meta": page(
            "https://example.com/meta",
            body=b'<html><head><meta name="robots" content="NoIndex, Follow"></head></html>'
        ),
        "https://example.com/gone": page("https://example.com/gone", status_code=404),
    }


@pytest.fixture
def link_workbook(tmp_path):
    """Workbook with a Link column, a blank row and an extra column."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Links"
    ws.append(["No", "Link", "Notes"])
    ws.append([1, "https://example.com/", "home"])
    ws.append([2, "  https://example.com/private  ", None])
    ws.append([3, None, "blank"])
    ws.append([4, "https://example.com/meta", None])

    path = tmp_path / "List-Link.xlsx"
    wb.save(path)
    return path
