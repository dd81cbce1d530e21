"""Workflow document schemas.

Pydantic models for serialized workflow graphs and per-kind node
configs, plus validation of whole JSON or YAML documents.

Usage::

    from botflow.schema import validate_document

    report = validate_document(document_text)
    if not report.valid:
        for error in report.errors:
            print(f"{error.path}: {error.message}")
"""

from __future__ import annotations

from botflow.schema.document import (
    DocumentIssue,
    DocumentReport,
    graph_json_schema,
    parse_document,
    validate_document,
)
from botflow.schema.graph import ConnectionRecord, GraphRecord, NodeRecord

__all__ = [
    "ConnectionRecord",
    "DocumentIssue",
    "DocumentReport",
    "GraphRecord",
    "NodeRecord",
    "graph_json_schema",
    "parse_document",
    "validate_document",
]
