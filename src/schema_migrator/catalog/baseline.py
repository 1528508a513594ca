"""Baseline schema files: a captured snapshot saved as JSON for later planning."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from schema_migrator.catalog.models import SchemaSnapshot
from schema_migrator.exceptions import SchemaError

logger = logging.getLogger(__name__)


def save_baseline(
    snapshot: SchemaSnapshot,
    path: str | Path,
    database: str | None = None,
) -> Path:
    """Write a snapshot to a baseline file.

    Args:
        snapshot: Snapshot to record
        path: Target file; parent directories are created
        database: Database name stored alongside the schema

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    document = {
        "captured_at": datetime.now().isoformat(),
        "database": database,
        "schema": snapshot.to_dict(),
    }
    path.write_text(json.dumps(document, indent=2, default=str))
    logger.info("Baseline schema written to %s", path)
    return path


def load_baseline(path: str | Path) -> SchemaSnapshot:
    """Load a baseline file as a desired schema.

    Raises:
        SchemaError: If the file is missing or is not a baseline document
    """
    path = Path(path)
    if not path.exists():
        raise SchemaError(f"Baseline file not found at {path}")

    try:
        document: dict[str, Any] = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise SchemaError(f"Baseline file {path} is not valid JSON: {e}") from e

    if "schema" not in document:
        raise SchemaError(f"Baseline file {path} has no 'schema' section")

    return SchemaSnapshot.from_dict(document["schema"])
