"""Workflow document validation.

A document is checked in three passes, each one only when the previous
pass found no errors:

1. layout: the ``GraphRecord`` JSON Schema, checked with jsonschema;
2. content: every node config against its kind's model, and id clashes;
3. structure: the graph model's own validation, split into errors
   and warnings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any

import jsonschema  # type: ignore[import-untyped,unused-ignore]
import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from botflow.schema.graph import GraphRecord

if TYPE_CHECKING:
    from botflow.graph.catalog import NodeCatalog


class DocumentIssue(BaseModel):
    """One problem found in a workflow document.

    Attributes:
        path: Location in the document, e.g. ``nodes[1].config.delaySeconds``
            for layout and content issues or ``nodes[check]`` for graph
            structure issues. Empty for document-level issues.
        message: Human-readable description.
    """

    path: str = ""
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


class DocumentReport(BaseModel):
    """Errors and warnings for one document. Warnings never invalidate it."""

    errors: list[DocumentIssue] = Field(default_factory=list)
    warnings: list[DocumentIssue] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def graph_json_schema() -> dict[str, Any]:
    """JSON Schema of a workflow graph document (camelCase keys)."""
    schema = GraphRecord.model_json_schema(by_alias=True)
    # Editor front-ends add their own top-level keys
    schema.setdefault("additionalProperties", True)
    return schema


@lru_cache(maxsize=1)
def _layout_validator() -> Any:
    schema = graph_json_schema()
    return jsonschema.validators.validator_for(schema)(schema)


def parse_document(content: str) -> tuple[dict[str, Any], list[DocumentIssue]]:
    """Parse JSON or YAML text into a mapping.

    Returns:
        Tuple of (data, errors). On failure, data is {}.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        return {}, [DocumentIssue(message=f"Invalid YAML/JSON syntax: {exc}")]

    if not isinstance(data, dict):
        return {}, [DocumentIssue(message=f"Expected a mapping (object), got {type(data).__name__}")]
    return data, []


def validate_document(content: str, *, catalog: NodeCatalog | None = None) -> DocumentReport:
    """Parse and fully validate a workflow graph document.

    Args:
        content: Document text, JSON or YAML.
        catalog: Node catalog for config checks; defaults to the built-in kinds.
    """
    data, errors = parse_document(content)
    if errors:
        return DocumentReport(errors=errors)

    errors = _check_layout(data)
    if errors:
        return DocumentReport(errors=errors)

    from botflow.graph.catalog import get_default_catalog

    catalog = catalog or get_default_catalog()
    errors = _check_contents(data, catalog)
    if errors:
        return DocumentReport(errors=errors)

    return _check_structure(data, catalog)


def _check_layout(data: dict[str, Any]) -> list[DocumentIssue]:
    found = sorted(_layout_validator().iter_errors(data), key=lambda e: e.json_path)
    return [DocumentIssue(path=_issue_path(e.json_path), message=e.message) for e in found]


def _issue_path(json_path: str) -> str:
    """``$.nodes[0].type`` -> ``nodes[0].type``; ``$`` -> ``""``."""
    return json_path.removeprefix("$").removeprefix(".")


def _check_contents(data: dict[str, Any], catalog: NodeCatalog) -> list[DocumentIssue]:
    errors: list[DocumentIssue] = []

    node_ids: set[str] = set()
    for i, node in enumerate(data.get("nodes", [])):
        if node["id"] in node_ids:
            errors.append(DocumentIssue(path=f"nodes[{i}].id", message=f"Duplicate node ID '{node['id']}'"))
        node_ids.add(node["id"])

        model = catalog.config_model(node["type"])
        if model is None:
            # Reported by the structural pass as unknown_node_type
            continue
        try:
            model.model_validate(node.get("config") or {})
        except PydanticValidationError as exc:
            for detail in exc.errors():
                field = ".".join(str(part) for part in detail["loc"])
                path = f"nodes[{i}].config.{field}" if field else f"nodes[{i}].config"
                errors.append(DocumentIssue(path=path, message=detail["msg"]))

    connection_ids: set[str] = set()
    for i, conn in enumerate(data.get("connections", [])):
        conn_id = conn.get("id")
        if conn_id is None:
            continue
        if conn_id in connection_ids:
            errors.append(DocumentIssue(path=f"connections[{i}].id", message=f"Duplicate connection ID '{conn_id}'"))
        connection_ids.add(conn_id)

    return errors


def _check_structure(data: dict[str, Any], catalog: NodeCatalog) -> DocumentReport:
    from botflow.graph.model import WorkflowGraph

    report = DocumentReport()
    graph = WorkflowGraph.from_record(GraphRecord.from_document(data), catalog=catalog)
    for violation in graph.validate():
        issue = DocumentIssue(path=violation.path, message=violation.message)
        (report.errors if violation.is_error else report.warnings).append(issue)
    return report
