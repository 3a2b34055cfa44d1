"""
Detection of noindex / nofollow directives in a fetched page.

Two sources are inspected: every instance of the X-Robots-Tag response
header, and the <meta name="robots"> / <meta name="googlebot"> tags of the
HTML document.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Iterable, List, Optional, Union

from bs4 import BeautifulSoup, ParserRejectedMarkup

from .normalizer import normalize, contains_exclusion


ROBOTS_HEADER = 'X-Robots-Tag'
ROBOTS_META_NAMES = ('robots', 'googlebot')

logger = logging.getLogger(__name__)


class FindingSource(Enum):
    """Where a directive was found."""
    HEADER = 'header'
    META_TAG = 'meta'


@dataclass(frozen=True)
class Finding:
    """Evidence of an exclusion directive."""
    source: FindingSource
    raw_value: str
    normalized_value: str
    tag_name: Optional[str] = None

    @property
    def label(self) -> str:
        if self.source is FindingSource.HEADER:
            return ROBOTS_HEADER
        return f"Meta {self.tag_name}"

    def to_text(self) -> str:
        return f"❌ {self.label} found: {self.normalized_value}"


@dataclass
class Detection:
    """Outcome of scanning one page."""
    findings: List[Finding] = field(default_factory=list)
    html_parsed: bool = False
    error: Optional[str] = None


class DirectiveDetector:
    """
    Scans response headers and HTML meta tags for exclusion directives.

    Findings keep discovery order: header instances first, then meta tags in
    document order.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features

    def detect(self, header_values: Iterable[str],
               body: Union[bytes, str, BinaryIO, None]) -> Detection:
        """
        Inspect one fetched page.

        Args:
            header_values: Every X-Robots-Tag value present on the response
            body: The HTML document, as bytes, text or a binary stream

        Returns:
            Detection with findings, whether the HTML was parsed and an
            error description when nothing could be recovered
        """
        findings = self._scan_headers(header_values)

        try:
            soup = self._parse(body)
        except (ParserRejectedMarkup, OSError) as e:
            if findings:
                # Header evidence stands on its own without a document
                logger.debug(f"HTML parse failed, keeping {len(findings)} header finding(s): {e}")
                return Detection(findings=findings, html_parsed=False)
            return Detection(html_parsed=False, error=f"Parse error: {e}")

        findings.extend(self._scan_meta_tags(soup))
        return Detection(findings=findings, html_parsed=True)

    def _scan_headers(self, header_values: Iterable[str]) -> List[Finding]:
        findings = []
        for raw_value in header_values:
            if not raw_value or not raw_value.strip():
                continue
            normalized_value = normalize(raw_value)
            if contains_exclusion(normalized_value):
                findings.append(Finding(
                    source=FindingSource.HEADER,
                    raw_value=raw_value,
                    normalized_value=normalized_value
                ))
        return findings

    def _parse(self, body) -> BeautifulSoup:
        if body is None:
            raise OSError("no response body")
        if hasattr(body, 'read'):
            body = body.read()
        return BeautifulSoup(body, self.features)

    def _scan_meta_tags(self, soup: BeautifulSoup) -> List[Finding]:
        """Check robots and googlebot meta tags."""
        findings = []
        for meta in soup.find_all('meta'):
            name = _attribute_text(meta.get('name')).strip().lower()
            if name not in ROBOTS_META_NAMES:
                continue

            raw_value = _attribute_text(meta.get('content'))
            normalized_value = normalize(raw_value)
            if contains_exclusion(normalized_value):
                findings.append(Finding(
                    source=FindingSource.META_TAG,
                    raw_value=raw_value,
                    normalized_value=normalized_value,
                    tag_name=name
                ))
        return findings


def _attribute_text(value) -> str:
    # bs4 hands back lists for multi-valued attributes
    if value is None:
        return ""
    if isinstance(value, list):
        return ' '.join(value)
    return str(value)


_default_detector = DirectiveDetector()


def detect(header_values: Iterable[str], body) -> Detection:
    """Module-level shortcut using the lxml tree builder."""
    return _default_detector.detect(header_values, body)
