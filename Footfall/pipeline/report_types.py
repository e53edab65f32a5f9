from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class StageRecord:
    """
    Provenance for one pipeline stage.

    Fields
    ------
    stage_name:
        Stable stage identifier ("aggregate", "regularize", "decompose",
        "cross_validate", "select", "refit", "forecast", "diagnose").
    summary:
        Small dictionary of headline values (counts, lengths, chosen tag).
    notes:
        Explanatory, non-fatal messages.
    warnings:
        Non-fatal but important issues (a variant failed, diagnostics undefined).
    """
    stage_name: str
    summary: Dict[str, Any] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class StageLog:
    """Ordered stage records for one pipeline run."""
    stages: Dict[str, StageRecord] = field(default_factory=dict)

    def start(self, stage_name: str) -> StageRecord:
        record = StageRecord(stage_name=stage_name)
        self.stages[stage_name] = record
        return record

    def get(self, stage_name: str) -> Optional[StageRecord]:
        return self.stages.get(stage_name)

    def list_stages(self) -> List[str]:
        return list(self.stages.keys())

    def all_warnings(self) -> List[str]:
        return [f"{name}: {w}" for name, rec in self.stages.items() for w in rec.warnings]
