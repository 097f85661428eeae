# dataset_store.py — Per-dataset row payload + metadata persistence
"""
dataset_store.py — Dataset Store

Each upload is saved once under a fresh id. Metadata (schema, counts,
preview) is kept apart from the full row payload so listings never load
rows.

With `root=None` everything stays in memory. Otherwise each dataset gets
a directory:

    <root>/<dataset_id>/metadata.json
    <root>/<dataset_id>/rows.json
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from analytics.errors import DatasetNotFoundError
from analytics.models import Column, Dataset, DatasetSummary
from analytics.scalars import Row, coerce_row
from analytics.validators import sanitize_dict_for_json

log = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

METADATA_FILE = "metadata.json"
ROWS_FILE = "rows.json"
PREVIEW_ROWS = 5


@dataclass
class DatasetRecord:
    """Dataset metadata as listed by the dashboard."""
    id: str
    name: str
    file_name: str
    uploaded_at: str
    row_count: int
    column_count: int
    columns: list[Column]
    summary: DatasetSummary
    status: str = "ready"
    preview: list[Row] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["columns"] = [c.to_dict() for c in self.columns]
        data["summary"] = self.summary.to_dict()
        return sanitize_dict_for_json(data)

    @classmethod
    def from_dict(cls, data: dict) -> DatasetRecord:
        columns = [Column.from_dict(c) for c in data.get("columns", [])]
        types = {c.name: c.type for c in columns}
        summary = data.get("summary") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            file_name=data.get("file_name", ""),
            uploaded_at=data.get("uploaded_at", ""),
            row_count=int(data.get("row_count", 0)),
            column_count=int(data.get("column_count", len(columns))),
            columns=columns,
            summary=DatasetSummary(
                total_rows=int(summary.get("total_rows", 0)),
                total_columns=int(summary.get("total_columns", len(columns))),
                missing_values=dict(summary.get("missing_values", {})),
                duplicates=int(summary.get("duplicates", 0)),
            ),
            status=data.get("status", "ready"),
            preview=[coerce_row(row, types) for row in data.get("preview", [])],
        )


def _atomic_write_json(path: Path, payload) -> None:
    """Write JSON next to `path` then move it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class DatasetStore:
    """Stores datasets by id; in memory or on disk."""

    def __init__(self, root: str | os.PathLike | None = None, preview_rows: int = PREVIEW_ROWS):
        self.root = Path(root) if root is not None else None
        self.preview_rows = preview_rows
        self._metadata: dict[str, dict] = {}
        self._rows: dict[str, list[dict]] = {}

        if self.root is not None:
            self.root.mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # WRITE
    # =========================================================================

    def save(self, dataset: Dataset, file_name: str, name: str | None = None) -> DatasetRecord:
        """Persist a cleaned dataset under a new id."""
        dataset_id = uuid.uuid4().hex
        record = DatasetRecord(
            id=dataset_id,
            name=name or Path(file_name).stem or file_name,
            file_name=file_name,
            uploaded_at=datetime.now(timezone.utc).isoformat(),
            row_count=len(dataset.rows),
            column_count=len(dataset.columns),
            columns=list(dataset.columns),
            summary=dataset.summary,
            preview=dataset.preview(self.preview_rows),
        )

        metadata = record.to_dict()
        rows = sanitize_dict_for_json(dataset.rows)

        if self.root is None:
            self._metadata[dataset_id] = metadata
            self._rows[dataset_id] = rows
        else:
            directory = self.root / dataset_id
            directory.mkdir(parents=True)
            _atomic_write_json(directory / ROWS_FILE, rows)
            _atomic_write_json(directory / METADATA_FILE, metadata)

        log.info("Saved dataset %s (%s, %d rows)", dataset_id, file_name, record.row_count)
        return record

    def delete(self, dataset_id: str) -> None:
        if self.root is None:
            if dataset_id not in self._metadata:
                raise DatasetNotFoundError(f"Dataset {dataset_id} not found")
            del self._metadata[dataset_id]
            del self._rows[dataset_id]
            return

        directory = self._directory(dataset_id)
        for name in (ROWS_FILE, METADATA_FILE):
            path = directory / name
            if path.exists():
                path.unlink()
        directory.rmdir()
        log.info("Deleted dataset %s", dataset_id)

    # =========================================================================
    # READ
    # =========================================================================

    def _directory(self, dataset_id: str) -> Path:
        # ids are uuid hex; anything else cannot name a stored dataset
        if not dataset_id or not dataset_id.isalnum():
            raise DatasetNotFoundError(f"Dataset {dataset_id!r} not found")
        directory = self.root / dataset_id
        if not (directory / METADATA_FILE).exists():
            raise DatasetNotFoundError(f"Dataset {dataset_id} not found")
        return directory

    def _read_json(self, dataset_id: str, file_name: str):
        if self.root is None:
            source = self._metadata if file_name == METADATA_FILE else self._rows
            if dataset_id not in source:
                raise DatasetNotFoundError(f"Dataset {dataset_id} not found")
            return source[dataset_id]

        path = self._directory(dataset_id) / file_name
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)

    def get_metadata(self, dataset_id: str) -> DatasetRecord:
        return DatasetRecord.from_dict(self._read_json(dataset_id, METADATA_FILE))

    def load_rows(self, dataset_id: str) -> list[Row]:
        """Full row payload with cells re-typed from the stored schema."""
        record = self.get_metadata(dataset_id)
        types = {c.name: c.type for c in record.columns}
        return [coerce_row(row, types) for row in self._read_json(dataset_id, ROWS_FILE)]

    def load_dataset(self, dataset_id: str) -> Dataset:
        record = self.get_metadata(dataset_id)
        return Dataset(rows=self.load_rows(dataset_id), columns=record.columns, summary=record.summary)

    def list_datasets(self) -> list[DatasetRecord]:
        """All stored datasets, newest upload first."""
        if self.root is None:
            records = [DatasetRecord.from_dict(m) for m in self._metadata.values()]
        else:
            records = [
                self.get_metadata(path.name)
                for path in self.root.iterdir()
                if (path / METADATA_FILE).exists()
            ]
        return sorted(records, key=lambda r: r.uploaded_at, reverse=True)
