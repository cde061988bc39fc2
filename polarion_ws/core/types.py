"""
Typed values decoded from Polarion web service responses.

These dataclasses provide type safety and IDE support for the payloads the
codec hands back as plain dicts.
"""

from dataclasses import dataclass, field
from typing import Any

from polarion_ws.core.errors import CodecError

# =============================================================================
# Helpers
# =============================================================================


def _as_list(value: Any) -> list[Any]:
    """Normalize a decoded element that may be absent, single or repeated."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _array_items(value: Any, item_name: str) -> list[Any]:
    """Items of an ArrayOf* wrapper, e.g. <customFields><Custom/>...</customFields>."""
    if isinstance(value, dict):
        return _as_list(value.get(item_name))
    return _as_list(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1")


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise CodecError(f"Expected a number, got {value!r}", details={"value": value})


def _ref_id(value: Any) -> str | None:
    """Id of a reference such as an enum option, user or project."""
    if isinstance(value, dict):
        return value.get("id")
    if isinstance(value, str):
        return value.strip() or None
    return None


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


# =============================================================================
# Shared Types
# =============================================================================


@dataclass
class Text:
    """Rich text value (descriptions, comments)."""

    type: str | None = None
    content: str | None = None
    content_lossy: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Text | None":
        """Create from decoded response value."""
        if data is None:
            return None
        if isinstance(data, str):
            return cls(type="text/plain", content=data)
        return cls(
            type=data.get("type"),
            content=data.get("content"),
            content_lossy=_as_bool(data.get("contentLossy", False)),
        )


def _custom_fields(value: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for custom in _array_items(value, "Custom"):
        if isinstance(custom, dict) and custom.get("key"):
            fields[custom["key"]] = custom.get("value")
    return fields


# =============================================================================
# Tracker Types
# =============================================================================


@dataclass
class WorkItem:
    """A Polarion work item."""

    uri: str | None = None
    id: str | None = None
    title: str | None = None
    type: str | None = None
    status: str | None = None
    priority: str | None = None
    severity: str | None = None
    resolution: str | None = None
    project_id: str | None = None
    author_id: str | None = None
    created: str | None = None
    updated: str | None = None
    due_date: str | None = None
    description: Text | None = None
    unresolvable: bool = False
    custom_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkItem":
        """Create from decoded response value."""
        return cls(
            uri=data.get("uri"),
            id=_text_or_none(data.get("id")),
            title=_text_or_none(data.get("title")),
            type=_ref_id(data.get("type")),
            status=_ref_id(data.get("status")),
            priority=_ref_id(data.get("priority")),
            severity=_ref_id(data.get("severity")),
            resolution=_ref_id(data.get("resolution")),
            project_id=_ref_id(data.get("project")),
            author_id=_ref_id(data.get("author")),
            created=data.get("created"),
            updated=data.get("updated"),
            due_date=data.get("dueDate"),
            description=Text.from_dict(data.get("description")),
            unresolvable=_as_bool(data.get("unresolvable", False)),
            custom_fields=_custom_fields(data.get("customFields")),
        )


@dataclass
class Baseline:
    """A named project baseline pinned to a repository revision."""

    uri: str | None = None
    id: str | None = None
    name: str | None = None
    base_revision: str | None = None
    project_id: str | None = None
    author_id: str | None = None
    description: Text | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Baseline":
        """Create from decoded response value."""
        return cls(
            uri=data.get("uri"),
            id=_text_or_none(data.get("id")),
            name=_text_or_none(data.get("name")),
            base_revision=_text_or_none(data.get("baseRevision")),
            project_id=_ref_id(data.get("project")),
            author_id=_ref_id(data.get("author")),
            description=Text.from_dict(data.get("description")),
        )


@dataclass
class Revision:
    """A repository revision."""

    uri: str | None = None
    name: str | None = None
    author: str | None = None
    created: str | None = None
    message: str | None = None
    repository_name: str | None = None
    internal_commit: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Revision":
        """Create from decoded response value."""
        return cls(
            uri=data.get("uri"),
            name=_text_or_none(data.get("name")),
            author=_text_or_none(data.get("author")),
            created=data.get("created"),
            message=_text_or_none(data.get("message")),
            repository_name=_text_or_none(data.get("repositoryName")),
            internal_commit=_as_bool(data.get("internalCommit", False)),
        )


@dataclass
class CustomField:
    """A single custom field value of a work item."""

    key: str
    value: Any = None
    parent_item_uri: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomField":
        """Create from decoded response value."""
        return cls(
            key=data.get("key") or "",
            value=data.get("value"),
            parent_item_uri=data.get("parentItemURI"),
        )


# =============================================================================
# Test Management Types
# =============================================================================


@dataclass
class TestRecord:
    """The result of executing one test case within a test run."""

    __test__ = False

    test_case_uri: str | None = None
    test_case_revision: str | None = None
    result: str | None = None
    executed: str | None = None
    executed_by_uri: str | None = None
    duration: float | None = None
    defect_uri: str | None = None
    comment: Text | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestRecord":
        """Create from decoded response value."""
        return cls(
            test_case_uri=data.get("testCaseURI"),
            test_case_revision=_text_or_none(data.get("testCaseRevision")),
            result=_ref_id(data.get("result")),
            executed=data.get("executed"),
            executed_by_uri=data.get("executedByURI"),
            duration=_as_float(data.get("duration")),
            defect_uri=data.get("defectURI"),
            comment=Text.from_dict(data.get("comment")),
        )


@dataclass
class TestRun:
    """A test run and, when requested, its records."""

    __test__ = False

    uri: str | None = None
    id: str | None = None
    title: str | None = None
    type: str | None = None
    status: str | None = None
    project_uri: str | None = None
    author_id: str | None = None
    created: str | None = None
    updated: str | None = None
    finished_on: str | None = None
    is_template: bool = False
    template_uri: str | None = None
    query: str | None = None
    records: list[TestRecord] = field(default_factory=list)
    custom_fields: dict[str, Any] = field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        """Check if the run has been finished."""
        return self.finished_on is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestRun":
        """Create from decoded response value."""
        return cls(
            uri=data.get("uri"),
            id=_text_or_none(data.get("id")),
            title=_text_or_none(data.get("title")),
            type=_ref_id(data.get("type")),
            status=_ref_id(data.get("status")),
            project_uri=data.get("projectURI"),
            author_id=_ref_id(data.get("author")),
            created=data.get("created"),
            updated=data.get("updated"),
            finished_on=data.get("finishedOn"),
            is_template=_as_bool(data.get("isTemplate", False)),
            template_uri=data.get("templateURI"),
            query=_text_or_none(data.get("query")),
            records=[TestRecord.from_dict(r) for r in _array_items(data.get("records"), "TestRecord") if isinstance(r, dict)],
            custom_fields=_custom_fields(data.get("customFields")),
        )
