"""
Export and import of the application snapshot as a JSON file.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..errors import ImportFormatError
from .models import Snapshot

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_KEYS = ("apiKey", "menuData", "appSettings")

# Snapshot section -> JSON type it must have when present
SECTION_TYPES = {
    "apiKey": str,
    "appSettings": dict,
    "menuData": dict,
    "recipes": dict,
    "shoppingList": dict,
    "budget": dict,
    "remainingItems": list,
}


def export_filename(now: Optional[datetime] = None) -> str:
    """Name of the export file for a given moment (date part only)."""
    now = now or datetime.now()
    return f"family-menu-{now.strftime('%Y-%m-%d')}.json"


def export_snapshot(snapshot: Snapshot, directory: str = ".", now: Optional[datetime] = None) -> Path:
    """
    Write a timestamped export file.

    Args:
        snapshot: Snapshot to export
        directory: Target directory
        now: Export moment (defaults to now)

    Returns:
        Path of the written file
    """
    now = now or datetime.now()
    data = snapshot.to_dict()
    data["timestamp"] = now.isoformat()

    path = Path(directory) / export_filename(now)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    logger.info(f"Exported data to {path}")
    return path


def parse_snapshot(text: str) -> Snapshot:
    """
    Parse export file contents into a Snapshot.

    Raises:
        ImportFormatError: If the text is not JSON or lacks a credential,
            menu data or settings
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"File is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Invalid file format.")

    missing = [key for key in REQUIRED_IMPORT_KEYS if not data.get(key)]
    if missing:
        raise ImportFormatError(f"Invalid file format: missing {', '.join(missing)}")

    wrong = [
        key for key, expected in SECTION_TYPES.items()
        if data.get(key) is not None and not isinstance(data[key], expected)
    ]
    if wrong:
        raise ImportFormatError(f"Invalid file format: malformed {', '.join(wrong)}")

    try:
        return Snapshot.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ImportFormatError(f"Invalid file format: {e}") from e


def import_snapshot(path: str) -> Snapshot:
    """
    Read an export file.

    Raises:
        ImportFormatError: If the file cannot be read or has the wrong format
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Could not read {path}: {e}") from e

    snapshot = parse_snapshot(text)
    logger.info(f"Imported data from {path}")
    return snapshot
