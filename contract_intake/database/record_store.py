import os
import re
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from contract_intake.core.errors import InvalidStatusTransition, PersistenceError
from contract_intake.schemas.analysis import (
    BUNDLE_FIELDS,
    AnalysisRecord,
    AnalysisStatus,
    can_transition,
)

logger = logging.getLogger(__name__)

RESULT_FIELDS = set(BUNDLE_FIELDS) | {"suggested_contract_id", "raw_result"}
UPDATABLE_FIELDS = RESULT_FIELDS | {"confidence", "error"}

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class AnalysisRecordStore(ABC):
    """Durable storage for analysis records.

    Every call is atomic for its record; status updates are checked against
    the lifecycle so a record never moves backwards.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @abstractmethod
    def _load(self, analysis_id: str) -> Optional[AnalysisRecord]:
        ...

    @abstractmethod
    def _save(self, record: AnalysisRecord) -> None:
        ...

    @abstractmethod
    def _load_all(self) -> List[AnalysisRecord]:
        ...

    def create(self, record: AnalysisRecord) -> AnalysisRecord:
        """Store a new record. It must be PENDING and its id unused."""
        if record.status != AnalysisStatus.PENDING:
            raise ValueError("New analysis records must start as PENDING")

        with self._lock:
            if self._load(record.id) is not None:
                raise PersistenceError(f"Analysis record {record.id} already exists")
            self._save(record)
        return record.model_copy(deep=True)

    def get(self, analysis_id: str) -> Optional[AnalysisRecord]:
        with self._lock:
            record = self._load(analysis_id)
        return record.model_copy(deep=True) if record else None

    def update_status(self, analysis_id: str, status: AnalysisStatus, **fields: Any) -> AnalysisRecord:
        """Move a record to a new status and set fields alongside it.

        Raises:
            PersistenceError: when the record does not exist or cannot be written
            InvalidStatusTransition: when the move is not a forward lifecycle step
        """
        status = AnalysisStatus(status)
        self._check_fields(status, fields)

        with self._lock:
            record = self._load(analysis_id)
            if record is None:
                raise PersistenceError(f"Analysis record {analysis_id} does not exist")
            if not can_transition(record.status, status):
                raise InvalidStatusTransition(analysis_id, record.status.value, status.value)

            updated = record.model_copy(update={**fields, "status": status, "updated_at": datetime.now()})
            # Re-validate so confidence clamping applies to the update too
            updated = AnalysisRecord.model_validate(updated.model_dump())
            self._save(updated)

        logger.debug(f"Analysis {analysis_id}: {record.status.value} -> {status.value}")
        return updated.model_copy(deep=True)

    def list_by_status(self, status: AnalysisStatus) -> List[AnalysisRecord]:
        with self._lock:
            records = self._load_all()
        return sorted(
            (record for record in records if record.status == status),
            key=lambda record: record.created_at,
        )

    @staticmethod
    def _check_fields(status: AnalysisStatus, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update analysis fields: {sorted(unknown)}")
        if status != AnalysisStatus.COMPLETED and RESULT_FIELDS & set(fields):
            raise ValueError("Extracted fields can only be stored with COMPLETED")
        if status != AnalysisStatus.FAILED and "error" in fields:
            raise ValueError("An error can only be stored with FAILED")


class InMemoryAnalysisRecordStore(AnalysisRecordStore):
    """Process-local record store."""

    def __init__(self):
        super().__init__()
        self._records: Dict[str, AnalysisRecord] = {}

    def _load(self, analysis_id: str) -> Optional[AnalysisRecord]:
        return self._records.get(analysis_id)

    def _save(self, record: AnalysisRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    def _load_all(self) -> List[AnalysisRecord]:
        return list(self._records.values())


class JsonAnalysisRecordStore(AnalysisRecordStore):
    """Record store keeping one JSON file per analysis."""

    def __init__(self, directory: Path):
        """Initialize the JSON record store.

        Args:
            directory: Directory holding the record files
        """
        super().__init__()
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Analysis records stored in {self.directory}")

    def _path(self, analysis_id: str) -> Path:
        if not _SAFE_ID.match(analysis_id or ""):
            raise PersistenceError(f"Invalid analysis id: {analysis_id!r}")
        return self.directory / f"{analysis_id}.json"

    def _load(self, analysis_id: str) -> Optional[AnalysisRecord]:
        path = self._path(analysis_id)
        if not path.exists():
            return None
        return self._read(path)

    def _read(self, path: Path) -> AnalysisRecord:
        try:
            return AnalysisRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Error reading analysis record {path.name}: {str(e)}")
            raise PersistenceError(f"Could not read analysis record {path.stem}", {"error": str(e)})

    def _save(self, record: AnalysisRecord) -> None:
        path = self._path(record.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(record.model_dump(mode="json"), indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error writing analysis record {record.id}: {str(e)}")
            raise PersistenceError(f"Could not write analysis record {record.id}", {"error": str(e)})

    def _load_all(self) -> List[AnalysisRecord]:
        records = []
        for path in self.directory.glob("*.json"):
            try:
                records.append(self._read(path))
            except PersistenceError:
                continue
        return records


def build_record_store(backend: str, directory: Optional[Path] = None) -> AnalysisRecordStore:
    """Create the record store named in settings."""
    if backend == "memory":
        return InMemoryAnalysisRecordStore()
    if backend == "json":
        if directory is None:
            raise ValueError("The json record store needs a directory")
        return JsonAnalysisRecordStore(directory)
    raise ValueError(f"Unknown record store backend: {backend}")
