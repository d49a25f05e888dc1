"""
Naive CSV sniffing for uploaded or pasted samples.

Only enough to describe the data to the LLM: line count, header columns and
the first few lines. The raw text itself is what the model reads.
"""

import os
from typing import List

from .schemas import DatasetInfo

SAMPLE_LINES = int(os.getenv("SAMPLE_LINES", "50"))
PASTED_FILENAME = "pasted_data.csv"


def _split_header(header: str) -> List[str]:
    separator = "," if "," in header else "\t"
    columns = []
    for col in header.split(separator):
        col = col.strip()
        if col.startswith('"'):
            col = col[1:]
        if col.endswith('"'):
            col = col[:-1]
        columns.append(col)
    return columns


def build_dataset_info(raw_text: str, filename: str = PASTED_FILENAME, sample_lines: int = SAMPLE_LINES) -> DatasetInfo:
    """Describe a CSV/TSV text. The header line counts as a row."""
    stripped = (raw_text or "").strip()
    lines = [line.rstrip("\r") for line in stripped.split("\n")] if stripped else []

    columns = _split_header(lines[0]) if lines else []

    return DatasetInfo(
        filename=filename,
        row_count=len(lines),
        col_count=len(columns),
        columns=columns,
        sample="\n".join(lines[:sample_lines]),
    )
