"""JSON export utilities for job results and stored profiles."""

import json
from datetime import datetime
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel

from liharvest.models.result import JobResult


def to_json(result: JobResult, indent: int = 2) -> str:
    """
    Convert JobResult to JSON string.

    Args:
        result: JobResult to serialize
        indent: JSON indentation level

    Returns:
        JSON string
    """
    return result.model_dump_json(indent=indent)


def to_dict(result: JobResult) -> dict:
    """
    Convert JobResult to dictionary.

    Args:
        result: JobResult to convert

    Returns:
        Dictionary representation
    """
    return result.model_dump(mode="json")


def save_json(
    result: JobResult,
    filepath: str | Path,
    indent: int = 2,
) -> Path:
    """
    Save JobResult to JSON file.

    Args:
        result: JobResult to save
        filepath: Output file path
        indent: JSON indentation level

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(result.model_dump_json(indent=indent), encoding="utf-8")
    return path


def load_json(filepath: str | Path) -> JobResult:
    """Load JobResult from JSON file."""
    path = Path(filepath)
    return JobResult.model_validate_json(path.read_text(encoding="utf-8"))


def export_profiles(profiles: Iterable[BaseModel], filepath: str | Path, indent: int = 2) -> Path:
    """
    Dump stored or cached profile rows into one export-friendly JSON file.

    Returns:
        Path to saved file
    """
    rows = [profile.model_dump(mode="json") for profile in profiles]
    payload = {
        "exported_at": datetime.now().isoformat(),
        "profiles_count": len(rows),
        "profiles": rows,
    }
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=indent), encoding="utf-8")
    return path
