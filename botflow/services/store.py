"""Workflow graph persistence.

The editor and the workflow service only see the ``WorkflowStore``
protocol. Two adapters ship with botflow:

- ``InMemoryWorkflowStore`` for tests and embedding
- ``JsonFileWorkflowStore`` writing one ``{base_dir}/{graph_id}.json``
  document per graph

Store calls are blocking and never retried; failures surface as
``PersistenceError``.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from botflow.exceptions import GraphNotFoundError, PersistenceError
from botflow.schema.graph import GraphRecord

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@runtime_checkable
class WorkflowStore(Protocol):
    """Load and save workflow graph records."""

    def load(self, graph_id: str) -> GraphRecord:
        """Raises GraphNotFoundError when nothing is stored under graph_id."""
        ...

    def save(self, record: GraphRecord) -> None: ...

    def delete(self, graph_id: str) -> None: ...

    def list_all(self, *, skip_unreadable: bool = False) -> list[GraphRecord]:
        """Every stored record; with skip_unreadable, broken documents are left out."""
        ...


class InMemoryWorkflowStore:
    """Dict-backed store. Records are copied in and out."""

    def __init__(self, records: list[GraphRecord] | None = None) -> None:
        self._records: dict[str, GraphRecord] = {}
        for record in records or []:
            self.save(record)

    def load(self, graph_id: str) -> GraphRecord:
        record = self._records.get(graph_id)
        if record is None:
            raise GraphNotFoundError(graph_id)
        return record.model_copy(deep=True)

    def save(self, record: GraphRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    def delete(self, graph_id: str) -> None:
        if self._records.pop(graph_id, None) is None:
            raise GraphNotFoundError(graph_id)

    def list_all(self, *, skip_unreadable: bool = False) -> list[GraphRecord]:
        return [record.model_copy(deep=True) for record in self._records.values()]


class JsonFileWorkflowStore:
    """Filesystem store with one JSON document per graph.

    Documents use the camelCase wire format, so files can be fed straight
    to ``botflow validate``. Writes go through a temporary file and an
    atomic rename.

    Args:
        base_dir: Directory holding the documents. Created on first save.
    """

    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir)

    def _path(self, graph_id: str) -> Path:
        if not _SAFE_ID_RE.match(graph_id) or ".." in graph_id:
            raise PersistenceError(f"Unsafe workflow graph id: {graph_id!r}")
        return self.base_dir / f"{graph_id}.json"

    def load(self, graph_id: str) -> GraphRecord:
        path = self._path(graph_id)
        if not path.is_file():
            raise GraphNotFoundError(graph_id)
        return self._read(path)

    def save(self, record: GraphRecord) -> None:
        path = self._path(record.id)
        payload = json.dumps(record.to_document(), indent=2, ensure_ascii=False)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.base_dir, prefix=f".{record.id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Failed to save workflow graph '{record.id}': {exc}") from exc
        logger.debug("Saved workflow graph %s to %s", record.id, path)

    def delete(self, graph_id: str) -> None:
        path = self._path(graph_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise GraphNotFoundError(graph_id) from None
        except OSError as exc:
            raise PersistenceError(f"Failed to delete workflow graph '{graph_id}': {exc}") from exc

    def list_all(self, *, skip_unreadable: bool = False) -> list[GraphRecord]:
        """Read every document in ``base_dir``.

        Raises:
            PersistenceError: On the first unreadable document, unless
                ``skip_unreadable`` is set; then it is logged and left out.
        """
        if not self.base_dir.is_dir():
            return []
        records: list[GraphRecord] = []
        for path in sorted(self.base_dir.glob("*.json")):
            try:
                records.append(self._read(path))
            except PersistenceError as exc:
                if not skip_unreadable:
                    raise
                logger.warning("Skipping unreadable workflow document: %s", exc)
        return records

    def _read(self, path: Path) -> GraphRecord:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return GraphRecord.from_document(data)
        except OSError as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            raise PersistenceError(f"Corrupt workflow document {path}: {exc}") from exc
