"""
Audit core: directive detection, fetching and the worker pool.
"""

from .normalizer import normalize, contains_exclusion
from .detector import DirectiveDetector, Detection, Finding, FindingSource, detect
from .fetcher import WebFetcher, FetchResult, ErrorKind
from .scheduler import AuditScheduler, Job, Result, ResultStatus, resolve_pool_size

__all__ = [
    'normalize', 'contains_exclusion',
    'DirectiveDetector', 'Detection', 'Finding', 'FindingSource', 'detect',
    'WebFetcher', 'FetchResult', 'ErrorKind',
    'AuditScheduler', 'Job', 'Result', 'ResultStatus', 'resolve_pool_size'
]
