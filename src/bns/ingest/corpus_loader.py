"""
Corpus loader - one-time import of the BNS section spreadsheet.

The source is a workbook (or CSV export) whose first sheet has a header row
followed by one row per section:

    | Section | Title | Description | Punishment |
"""

import logging
from pathlib import Path
from typing import List, Union

import pandas as pd

from ..core.exceptions import CorpusLoadError
from ..core.types import Entry
from ..storage.entry_store import EntryStore


logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")
CSV_SUFFIXES = (".csv",)
REQUIRED_COLUMNS = 4


def _read_frame(path: Path) -> pd.DataFrame:
    """Read the raw sheet, every cell as text, header row included."""
    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        frame = pd.read_excel(path, sheet_name=0, header=None, dtype=str)
    elif suffix in CSV_SUFFIXES:
        frame = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
    else:
        raise CorpusLoadError(f"Unsupported corpus format: {suffix}", path=str(path))
    return frame.fillna("")


def read_corpus(path: Union[str, Path]) -> List[Entry]:
    """
    Parse the corpus file into unsaved entries.

    Args:
        path: Workbook (.xlsx/.xls) or CSV file

    Returns:
        Entries in file order, without ids or embeddings

    Raises:
        CorpusLoadError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise CorpusLoadError(f"Corpus file not found: {path}", path=str(path))

    logger.info(f"Reading corpus from {path}")
    try:
        frame = _read_frame(path)
    except CorpusLoadError:
        raise
    except Exception as e:
        raise CorpusLoadError(f"Failed to read corpus {path}: {e}", path=str(path)) from e

    if len(frame) > 1 and frame.shape[1] < REQUIRED_COLUMNS:
        raise CorpusLoadError(
            f"Corpus needs {REQUIRED_COLUMNS} columns, found {frame.shape[1]}",
            path=str(path),
        )

    entries = []
    skipped = 0
    # Row 0 is the header
    for row_number, row in enumerate(frame.itertuples(index=False), start=1):
        if row_number == 1:
            continue
        section_no, title, description, punishment = (
            str(value).strip() for value in row[:REQUIRED_COLUMNS]
        )
        if not any((section_no, title, description, punishment)):
            skipped += 1
            continue
        entries.append(Entry(
            section_no=section_no,
            title=title,
            description=description,
            punishment=punishment,
        ))

    logger.info(f"Parsed {len(entries)} sections ({skipped} blank rows skipped)")
    return entries


def bootstrap_corpus(store: EntryStore, path: Union[str, Path]) -> int:
    """
    Import the corpus into an empty store.

    Does nothing if the store already holds entries.

    Returns:
        Number of entries saved
    """
    existing = store.count()
    if existing > 0:
        logger.info(f"Store already holds {existing} entries; skipping corpus import")
        return 0

    entries = read_corpus(path)
    for entry in entries:
        store.save(entry)

    logger.info(f"Imported {len(entries)} sections into the store")
    return len(entries)
