"""
Normalization of robots directive strings.
"""

import re


DIRECTIVE_SEPARATOR_PATTERN = re.compile(r'\s*,\s*')

EXCLUSION_DIRECTIVES = ('noindex', 'nofollow')


def normalize(value: str) -> str:
    """
    Normalize a robots directive list.

    Lower-cases, trims surrounding whitespace and collapses whitespace around
    comma separators, so "NoIndex ,  nofollow" becomes "noindex,nofollow".
    """
    if not value:
        return ""
    return DIRECTIVE_SEPARATOR_PATTERN.sub(',', value.lower().strip())


def contains_exclusion(normalized_value: str) -> bool:
    """Check a normalized directive list for noindex or nofollow."""
    return any(directive in normalized_value for directive in EXCLUSION_DIRECTIVES)
