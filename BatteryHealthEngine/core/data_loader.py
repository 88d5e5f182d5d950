"""
Universal Battery Data Loader
Detects the syntax of cycler exports (Excel, JSON, XML, delimited text)
and turns them into row-oriented raw records
"""

import io
import json
import logging
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..config import Config
from .models import IngestedTable
from .exceptions import InvalidFileHandleError, UnsupportedFormatError
from .column_mapper import is_field_name


ENCODINGS = ('utf-8-sig', 'cp949', 'latin-1')
DELIMITERS = (',', ';', '\t', '|', ' ')
JSON_LIST_KEYS = ('data', 'results', 'cycles', 'measurements')

XLSX_MAGIC = b'PK\x03\x04'
OLE2_MAGIC = b'\xd0\xcf\x11\xe0'


class UniversalBatteryLoader:
    """
    Universal loader for battery test exports of unknown layout
    Supports Excel workbooks, JSON, XML and delimited text with vendor preambles
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self, content: Union[bytes, str], filename: str,
             warnings: List[str]) -> IngestedTable:
        """
        Read raw file content into a table of raw records

        Args:
            content: File bytes or already-decoded text
            filename: Original file name (used for logging only)
            warnings: Shared warnings list

        Returns:
            IngestedTable with source headers as columns

        Raises:
            InvalidFileHandleError: content is None or not bytes/str
            UnsupportedFormatError: no parser produced any rows
        """
        if content is None or not isinstance(content, (bytes, bytearray, str)):
            raise InvalidFileHandleError(
                f"Expected bytes or str content for {filename!r}, got {type(content).__name__}")

        raw = bytes(content) if isinstance(content, (bytes, bytearray)) else None
        size_bytes = len(raw) if raw is not None else len(content.encode('utf-8'))

        if size_bytes > self.config.LARGE_FILE_BYTES:
            message = (f"Large file ({size_bytes / (1024 * 1024):.1f} MB); "
                       f"processing may be slow")
            warnings.append(message)
            self.logger.warning(message)

        if size_bytes == 0:
            raise UnsupportedFormatError(f"File {filename!r} is empty")

        if raw is not None and raw[:4] in (XLSX_MAGIC, OLE2_MAGIC):
            table = self._try_excel(raw, warnings)
            if table is not None:
                table.size_bytes = size_bytes
                return table

        text = self.decode_content(raw, warnings) if raw is not None else content
        if raw is None and '\ufffd' in text:
            warnings.append("Encoding artifacts: replacement characters found in text")

        if not text.strip():
            raise UnsupportedFormatError(f"File {filename!r} contains no data")

        stripped = text.lstrip()
        if stripped[:1] in ('[', '{'):
            table = self._try_json(stripped)
            if table is not None:
                table.size_bytes = size_bytes
                return table

        if stripped[:1] == '<':
            table = self._try_xml(stripped)
            if table is not None:
                table.size_bytes = size_bytes
                return table

        table = self._read_delimited(text, warnings)
        table.size_bytes = size_bytes
        self.logger.debug(f"Loaded {len(table.frame)} rows from {filename} as {table.format_name}")
        return table

    def decode_content(self, raw: bytes, warnings: List[str]) -> str:
        """Decode bytes, trying UTF-8 first and falling back to cp949/latin-1"""
        for index, encoding in enumerate(ENCODINGS):
            try:
                text = raw.decode(encoding)
            except UnicodeDecodeError:
                continue

            if index > 0:
                message = f"Encoding artifacts: file is not UTF-8, decoded as {encoding}"
                warnings.append(message)
                self.logger.warning(message)
            elif '\ufffd' in text:
                warnings.append("Encoding artifacts: replacement characters found in text")
            return text

        # latin-1 accepts every byte sequence
        raise UnsupportedFormatError("Unable to decode file content")

    def _try_excel(self, raw: bytes, warnings: List[str]) -> Optional[IngestedTable]:
        try:
            sheets = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None, dtype=object)
        except Exception as e:
            self.logger.debug(f"Excel parser rejected file: {e}")
            return None

        best_name, best_grid = None, None
        for name, grid in sheets.items():
            grid = grid.dropna(how='all')
            if best_grid is None or len(grid) > len(best_grid):
                best_name, best_grid = name, grid

        if best_grid is None or best_grid.empty:
            return None

        rows = [[self._cell_text(v) for v in row] for row in best_grid.itertuples(index=False)]
        header_row = self._find_header(rows[:self.config.HEADER_SCAN_LINES])

        if header_row is None:
            frame = best_grid.reset_index(drop=True)
            frame.columns = [f'column_{i}' for i in range(frame.shape[1])]
            self._warn_no_header(warnings)
        else:
            if header_row > 0:
                self._warn_preamble(header_row, warnings)
            header = [text if text else f'column_{i}' for i, text in enumerate(rows[header_row])]
            frame = best_grid.iloc[header_row + 1:].reset_index(drop=True)
            frame.columns = self._unique(header)

        if frame.empty:
            return None

        self.logger.debug(f"Excel sheet {best_name!r} selected ({len(frame)} rows)")
        return IngestedTable(frame=frame, format_name='excel', header_row=header_row)

    def _try_json(self, text: str) -> Optional[IngestedTable]:
        try:
            data = json.loads(text)
        except ValueError as e:
            self.logger.debug(f"JSON parser rejected file: {e}")
            return None

        if isinstance(data, dict):
            for key in JSON_LIST_KEYS:
                if isinstance(data.get(key), list):
                    data = data[key]
                    break
            else:
                data = [data]

        if not isinstance(data, list):
            return None
        records = [item for item in data if isinstance(item, dict)]
        if not records:
            return None

        frame = pd.DataFrame(records)
        return IngestedTable(frame=frame, format_name='json', header_row=0)

    def _try_xml(self, text: str) -> Optional[IngestedTable]:
        try:
            frame = pd.read_xml(io.StringIO(text), parser='etree')
        except Exception as e:
            self.logger.debug(f"XML parser rejected file: {e}")
            return None

        if frame is None or frame.empty:
            return None
        return IngestedTable(frame=frame, format_name='xml', header_row=0)

    def _read_delimited(self, text: str, warnings: List[str]) -> IngestedTable:
        lines = [line for line in text.splitlines() if line.strip()]
        delimiter, header_row = self.detect_layout(lines)

        if header_row is not None and header_row > 0:
            self._warn_preamble(header_row, warnings)
        elif header_row is None:
            self._warn_no_header(warnings)

        start = header_row if header_row is not None else 0
        body = '\n'.join(lines[start:])
        sep = r'\s+' if delimiter == ' ' else (delimiter or ',')

        try:
            frame = pd.read_csv(
                io.StringIO(body),
                sep=sep,
                header=0 if header_row is not None else None,
                dtype=str,
                engine='python',
                skipinitialspace=True,
                on_bad_lines='skip'
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            raise UnsupportedFormatError(f"Delimited text could not be parsed: {e}") from e

        if header_row is None:
            frame.columns = [f'column_{i}' for i in range(frame.shape[1])]
        else:
            frame.columns = self._unique([str(c).strip() for c in frame.columns])

        frame = frame.dropna(how='all').reset_index(drop=True)
        if frame.empty:
            raise UnsupportedFormatError("No data rows found in delimited text")

        return IngestedTable(frame=frame, format_name='delimited',
                             delimiter=delimiter, header_row=header_row)

    def detect_layout(self, lines: Sequence[str]) -> Tuple[Optional[str], Optional[int]]:
        """
        Choose the delimiter and header row for delimited text

        The first non-empty line decides the delimiter; if no header is found
        with it, every scanned line is tried in turn as the delimiter source.

        Returns:
            (delimiter or None, header row offset or None)
        """
        scan = list(lines[:self.config.HEADER_SCAN_LINES])
        if not scan:
            return None, None

        candidates = [self.detect_delimiter(line) for line in scan] + [None]
        tried = []
        for delimiter in candidates:
            if delimiter in tried:
                continue
            tried.append(delimiter)
            rows = [self._split(line, delimiter) for line in scan]
            header_row = self._find_header(rows, min_tokens=2 if delimiter else 1)
            if header_row is not None:
                return delimiter, header_row

        fallback = next((d for d in candidates if d is not None), None)
        return fallback, None

    @staticmethod
    def detect_delimiter(line: str) -> Optional[str]:
        """Candidate producing the most fields (> 1); ties go to the earlier candidate"""
        best, best_count = None, 1
        for delimiter in DELIMITERS:
            count = len(UniversalBatteryLoader._split(line, delimiter))
            if count > best_count:
                best, best_count = delimiter, count
        return best

    @staticmethod
    def _split(line: str, delimiter: Optional[str]) -> List[str]:
        if delimiter is None:
            return [line.strip()]
        if delimiter == ' ':
            return line.split()
        return [token.strip().strip('"\'') for token in line.split(delimiter)]

    @staticmethod
    def _find_header(rows: Sequence[Sequence[str]], min_tokens: int = 1) -> Optional[int]:
        # A header must actually split on the delimiter being tried
        for index, tokens in enumerate(rows):
            if len(tokens) >= min_tokens and any(is_field_name(token) for token in tokens):
                return index
        return None

    @staticmethod
    def _cell_text(value) -> str:
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return ''
        return str(value).strip()

    @staticmethod
    def _unique(names: List[str]) -> List[str]:
        seen = {}
        result = []
        for name in names:
            if name in seen:
                seen[name] += 1
                result.append(f'{name}_{seen[name]}')
            else:
                seen[name] = 0
                result.append(name)
        return result

    def _warn_preamble(self, header_row: int, warnings: List[str]):
        message = f"Skipped {header_row} preamble line(s) before the header row"
        warnings.append(message)
        self.logger.warning(message)

    def _warn_no_header(self, warnings: List[str]):
        message = "No header row detected; columns named column_0..N"
        warnings.append(message)
        self.logger.warning(message)
