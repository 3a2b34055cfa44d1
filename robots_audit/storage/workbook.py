"""
Excel workbook job source and result sink.

The input sheet has a header row with a "Link" column; results are written
back into a "Result" column of the same sheet and saved to a new file.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional

from openpyxl import load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from ..audit.scheduler import Job, Result


HEADER_ROW = 1

SUCCESS_MARKER = "✅"
FAILURE_MARKER = "❌"

SUCCESS_COLOR = "006100"  # dark green
FAILURE_COLOR = "9C0006"  # dark red

LINK_COLUMN_WIDTH = 50
RESULT_COLUMN_WIDTH = 60
RESULT_ROW_HEIGHT = 45
HEADER_ROW_HEIGHT = 22


class WorkbookError(RuntimeError):
    """Raised when the input workbook cannot be used as a job source."""


def _header_text(value) -> str:
    return str(value).strip().lower() if value is not None else ""


class WorkbookJobSource:
    """
    Reads audit jobs from the link column of a worksheet.

    The result column is located by its header, or created next to the link
    column when missing.
    """

    def __init__(self, path: str, sheet: Optional[str] = None,
                 link_header: str = 'Link', result_header: str = 'Result'):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

        try:
            self.workbook = load_workbook(self.path)
        except (OSError, InvalidFileException, KeyError, ValueError) as e:
            raise WorkbookError(f"Failed to open workbook {self.path}: {e}") from e

        self.worksheet = self._select_sheet(sheet)

        if self.worksheet.max_row < 2:
            raise WorkbookError("No data found: a header row and at least one link are required")

        self.link_column = self._find_column(link_header)
        if self.link_column is None:
            raise WorkbookError(f'Header column "{link_header}" not found')

        self.result_column = self._find_column(result_header)
        if self.result_column is None:
            self.result_column = self._create_result_column(result_header)

    def _select_sheet(self, sheet: Optional[str]) -> Worksheet:
        if not self.workbook.sheetnames:
            raise WorkbookError("Workbook contains no sheets")
        if sheet is None:
            return self.workbook[self.workbook.sheetnames[0]]
        if sheet not in self.workbook.sheetnames:
            raise WorkbookError(f'Sheet "{sheet}" not found in {self.path}')
        return self.workbook[sheet]

    def _find_column(self, header: str) -> Optional[int]:
        wanted = header.strip().lower()
        for cell in self.worksheet[HEADER_ROW]:
            if _header_text(cell.value) == wanted:
                return cell.column
        return None

    def _create_result_column(self, header: str) -> int:
        column = self.link_column + 1
        if self.worksheet.cell(row=HEADER_ROW, column=column).value is not None:
            column = self.worksheet.max_column + 1

        self.worksheet.cell(row=HEADER_ROW, column=column, value=header)
        self.logger.info(f'Created result column "{header}" at {get_column_letter(column)}')
        return column

    def jobs(self) -> Iterator[Job]:
        """Yield one Job per row with a non-empty link."""
        for row in range(HEADER_ROW + 1, self.worksheet.max_row + 1):
            value = self.worksheet.cell(row=row, column=self.link_column).value
            if value is None:
                continue
            url = str(value).strip()
            if not url:
                continue
            yield Job(row=row, url=url)

class WorkbookResultSink:
    """Writes rendered Results back into the source worksheet."""

    def __init__(self, source: WorkbookJobSource):
        self.source = source
        self.worksheet = source.worksheet
        self.logger = logging.getLogger(__name__)

        alignment = Alignment(wrap_text=True, vertical='top')
        self.styles = {
            SUCCESS_MARKER: (Font(color=SUCCESS_COLOR), alignment),
            FAILURE_MARKER: (Font(color=FAILURE_COLOR), alignment),
            None: (Font(), alignment),
        }
        self.rows_written = 0

    def write(self, result: Result):
        """Write one Result into its originating row."""
        # Control characters from page content are not allowed in cell values
        text = ILLEGAL_CHARACTERS_RE.sub("", result.to_text())
        cell = self.worksheet.cell(row=result.row, column=self.source.result_column, value=text)

        marker = None
        if text.startswith(SUCCESS_MARKER):
            marker = SUCCESS_MARKER
        elif text.startswith(FAILURE_MARKER):
            marker = FAILURE_MARKER
        cell.font, cell.alignment = self.styles[marker]

        # No automatic row height in Excel files; leave room for several lines
        self.worksheet.row_dimensions[result.row].height = RESULT_ROW_HEIGHT
        self.rows_written += 1

    def save(self, path: str):
        """Style the header and column widths, then save the workbook."""
        thin = Side(style='thin', color='000000')
        header_font = Font(bold=True)
        header_alignment = Alignment(horizontal='center', vertical='center')
        header_border = Border(left=thin, top=thin, right=thin, bottom=thin)

        for column in (self.source.link_column, self.source.result_column):
            cell = self.worksheet.cell(row=HEADER_ROW, column=column)
            cell.font = header_font
            cell.alignment = header_alignment
            cell.border = header_border

        self.worksheet.row_dimensions[HEADER_ROW].height = HEADER_ROW_HEIGHT
        self.worksheet.column_dimensions[get_column_letter(self.source.link_column)].width = LINK_COLUMN_WIDTH
        self.worksheet.column_dimensions[get_column_letter(self.source.result_column)].width = RESULT_COLUMN_WIDTH

        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.source.workbook.save(output)
        except OSError as e:
            raise WorkbookError(f"Failed to save output {output}: {e}") from e

        self.logger.info(f"Saved {self.rows_written} results to {output}")
