"""
Workbook input and output for audit runs.
"""

from .workbook import WorkbookJobSource, WorkbookResultSink, WorkbookError

__all__ = ['WorkbookJobSource', 'WorkbookResultSink', 'WorkbookError']
