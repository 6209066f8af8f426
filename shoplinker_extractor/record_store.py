"""Append-only CSV persistence for extracted records, plus the input table reader."""

import csv
import os
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from shoplinker_extractor.models import OUTPUT_COLUMNS, ExtractedRecord


class RecordStore:
    """Append-only output table.

    The header is written once, when the file does not exist yet. Existing
    files are never truncated or rewritten, so a partially written batch is
    always a valid prefix of completed records.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding

    def ensure_header(self) -> bool:
        """Create the table with its header if missing.

        Returns:
            True if the file was created by this call
        """
        if self.path.exists():
            return False
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # "x" refuses to clobber a file created between the check and the open
        try:
            with open(self.path, "x", encoding=self.encoding, newline="") as f:
                f.write(",".join(OUTPUT_COLUMNS) + "\n")
        except FileExistsError:
            return False
        logger.info(f"Created output table {self.path}")
        return True

    def append(self, record: ExtractedRecord) -> None:
        """Append one fully quoted row and flush it to disk."""
        self.ensure_header()
        with open(self.path, "a", encoding=self.encoding, newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(record.to_row())
            f.flush()
            os.fsync(f.fileno())
        logger.debug(f"Appended record {record.product_code or '<no code>'} to {self.path}")


def read_input_codes(
    path: Union[str, Path],
    skip_rows: int = 2,
    encoding: str = "utf-8-sig",
) -> List[str]:
    """Read product codes from column A of the input table.

    The first ``skip_rows`` rows are headers/metadata. Blank codes are
    dropped; duplicates are kept and processed independently.
    """
    codes = []
    with open(path, "r", encoding=encoding, newline="") as f:
        reader = csv.reader(f)
        for index, row in enumerate(reader):
            if index < skip_rows or not row:
                continue
            code = (row[0] or "").strip()
            if code:
                codes.append(code)
    return codes


def select_codes(codes: List[str], offset: int = 0, limit: Optional[int] = None) -> List[str]:
    """Slice the code list for resuming on an unprocessed suffix."""
    offset = max(0, int(offset or 0))
    selected = codes[offset:]
    if limit is not None:
        selected = selected[: max(0, int(limit))]
    return selected
