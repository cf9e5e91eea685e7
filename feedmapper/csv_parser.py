"""
CSV/TSV file parser with header re-mapping.
Handles encoding issues and yields rows in chunks.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List

import pandas as pd

from .models import CsvProfile

logger = logging.getLogger(__name__)


class CSVParser:
    """Parse delimited files with chunking."""

    def __init__(self, chunk_size: int = 500, delimiter: str = ',', encoding: str = 'utf-8',
                 has_header_row: bool = True):
        """
        Initialize CSV parser.

        Args:
            chunk_size: Number of rows per chunk
            delimiter: Field delimiter
            encoding: File encoding
            has_header_row: If False, columns are named column_1..column_n
        """
        self.chunk_size = chunk_size
        self.delimiter = delimiter
        self.encoding = encoding
        self.has_header_row = has_header_row

    @classmethod
    def from_profile(cls, profile: CsvProfile, chunk_size: int = 500) -> 'CSVParser':
        return cls(chunk_size=chunk_size, delimiter=profile.delimiter, has_header_row=profile.has_header_row)

    def parse(self, file_path: Path) -> Iterator[List[Dict[str, Any]]]:
        """
        Parse CSV file and yield chunks of rows.

        Args:
            file_path: Path to CSV file

        Yields:
            Lists of row dicts; every value is a string, empty cells are ""
        """
        file_path = Path(file_path)
        logger.info(f"Parsing CSV: {file_path.name}")

        try:
            for chunk_df in pd.read_csv(
                file_path,
                delimiter=self.delimiter,
                header=0 if self.has_header_row else None,
                dtype=str,  # Keep as strings
                keep_default_na=False,
                chunksize=self.chunk_size,
                encoding=self.encoding,
                skipinitialspace=True,
                skip_blank_lines=True,
                on_bad_lines='warn',
                engine='python'
            ):
                if self.has_header_row:
                    chunk_df.columns = [str(c).strip() for c in chunk_df.columns]
                else:
                    chunk_df.columns = [f"column_{i + 1}" for i in range(len(chunk_df.columns))]

                chunk_rows = chunk_df.fillna('').to_dict('records')
                logger.debug(f"Yielding chunk with {len(chunk_rows)} rows")
                yield chunk_rows

        except UnicodeDecodeError:
            if self.encoding == 'latin-1':
                raise
            logger.warning("UTF-8 decode failed, trying latin-1")
            self.encoding = 'latin-1'
            yield from self.parse(file_path)

        except pd.errors.EmptyDataError:
            logger.warning(f"CSV file is empty: {file_path.name}")
            return

        except Exception as e:
            logger.error(f"Error parsing CSV: {e}")
            raise

    def parse_all(self, file_path: Path) -> List[Dict[str, Any]]:
        rows = []
        for chunk in self.parse(file_path):
            rows.extend(chunk)
        return rows


def apply_header_mappings(rows: List[Dict[str, Any]], header_mappings: Dict[str, str]) -> List[Dict[str, Any]]:
    """
    Rename row keys through a profile's header mappings.

    Headers without a mapping keep their original name.
    """
    mapped_rows = []
    for row in rows:
        mapped_rows.append({header_mappings.get(key, key): value for key, value in row.items()})
    return mapped_rows
