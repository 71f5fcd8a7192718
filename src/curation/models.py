"""
Record types passed between the pipeline components.

WorkItem is built once from a store row and never mutated; CurationOutput is
the validated model reply; TaskResult and ProcessResult are the per-item
outcomes of the retry ladder and of the full read → call → write cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SUCCESS = "success"
FAILED = "failed"

# Column order of the per-run results export.
RESULT_COLUMNS: list[str] = [
    "item_id",
    "original_topic",
    "new_topic",
    "api_success",
    "db_success",
    "skipped",
    "reclassified",
    "attempts",
    "rung",
    "credential",
    "error",
]


@dataclass(frozen=True)
class WorkItem:
    """One question row, restricted to the fields the pipeline reads."""

    id: str
    statement: str
    options: tuple[str, ...]
    correct_option_index: Any
    solution: str | None
    topic: str

    @classmethod
    def from_row(cls, row: dict) -> "WorkItem":
        """
        Build a WorkItem from a store row.

        Accepts both the question table's column names (``statement_md``,
        ``correct_option``, ``solution_md``) and the generic ones
        (``statement``, ``correct_option_index``, ``solution``).  Values are
        carried over as-is; :func:`pipeline.validate_work_item` decides
        whether the item is usable.

        Raises:
            KeyError: The row has no ``id``.
        """
        statement = row.get("statement_md", row.get("statement"))
        correct = row.get("correct_option", row.get("correct_option_index"))
        solution = row.get("solution_md", row.get("solution"))
        options = row.get("options") or []
        if not isinstance(options, (list, tuple)):
            options = [options]
        return cls(
            id=str(row["id"]),
            statement=statement if isinstance(statement, str) else "",
            options=tuple(options),
            correct_option_index=correct,
            solution=solution if isinstance(solution, str) else None,
            topic=str(row.get("topic") or ""),
        )


@dataclass(frozen=True)
class CurationOutput:
    """Validated structured reply from the model."""

    corrected_topic: str
    statement: str
    options: list[str]
    correct_option_index: int
    hint: str
    remark: str | None = None
    flags: dict[str, bool] = field(default_factory=dict)


@dataclass
class TaskResult:
    """Outcome of one WorkItem after the retry ladder."""

    item_id: str
    status: str
    output: CurationOutput | None = None
    attempts: int = 0
    rung: str | None = None
    credential: str | None = None
    retried: bool = False
    error: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS


@dataclass
class ProcessResult:
    """Outcome of one WorkItem across the remote call and the store write."""

    item_id: str
    original_topic: str
    api_success: bool
    new_topic: str | None = None
    db_success: bool | None = None
    skipped: bool = False
    reclassified: bool = False
    attempts: int = 0
    rung: str | None = None
    credential: str | None = None
    error: str | None = None

    @property
    def unrecovered(self) -> bool:
        """True when the correction never reached the store."""
        return not self.api_success or self.db_success is False

    def to_record(self) -> dict:
        """Flat dict for CSV export, keyed by ``RESULT_COLUMNS``."""
        return {column: getattr(self, column) for column in RESULT_COLUMNS}
