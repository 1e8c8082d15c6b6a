"""
Filesystem Storage Manager
===========================
Durable storage for signature records: one JSON file per record, named
by record id, inside the results directory.

Directory Layout:
    results/
    ├── <record id>.json
    └── ...
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

# Project root: one level up from /docsig/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

_DEFAULT_RESULTS_DIR = _PROJECT_ROOT / "results"

RECORD_SUFFIX = ".json"


def get_results_dir() -> Path:
    """Return the configured results directory."""
    return Path(os.environ.get("DOCSIG_RESULTS_DIR", _DEFAULT_RESULTS_DIR))


def record_path(results_dir: Union[str, Path], record_id: str) -> Path:
    return Path(results_dir) / f"{sanitize_name(record_id)}{RECORD_SUFFIX}"


def save_record(results_dir: Union[str, Path], record_id: str, data: dict) -> Path:
    """
    Write one record as pretty JSON.

    The file is written next to its destination and moved into place, so
    readers never see a partial record.

    Raises:
        OSError: if the directory or file cannot be written.
    """
    directory = Path(results_dir)
    directory.mkdir(parents=True, exist_ok=True)
    dest = record_path(directory, record_id)

    fd, tmp_name = tempfile.mkstemp(
        dir=directory, prefix=".tmp-", suffix=RECORD_SUFFIX
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        os.replace(tmp_name, dest)
    except Exception:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Record saved: {dest.name}")
    return dest


def iter_records(results_dir: Union[str, Path]) -> Iterator[tuple[Path, dict]]:
    """
    Yield (path, parsed JSON) for every record in the results directory.

    Unreadable or malformed files are logged and skipped.

    Raises:
        FileNotFoundError: if the directory does not exist.
        OSError: if the directory cannot be listed.
    """
    directory = Path(results_dir)
    paths = sorted(
        p for p in directory.iterdir()
        if p.suffix == RECORD_SUFFIX and not p.name.startswith(".")
    )
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8") as f:
                yield path, json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Skipping unreadable record {path.name}: {e}")


# ─── Helpers ──────────────────────────────────────────────────────────────────


def sanitize_name(name: str) -> str:
    """Sanitize a name for filesystem use."""
    return "".join(
        c if c.isalnum() or c in "-_." else "_"
        for c in name
    ).strip().replace(" ", "_")[:150]
