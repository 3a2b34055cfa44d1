"""
Robots Audit

Checks a list of web pages for noindex / nofollow directives in the
X-Robots-Tag header and in robots meta tags.
"""

__version__ = "1.0.0"
__description__ = "Concurrent indexability audit for lists of URLs"
