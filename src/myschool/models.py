"""Core MySchool data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Tuple


@dataclass(frozen=True, slots=True)
class SchoolRecord:
    """One school of the directory."""

    code: str
    org_code: str
    name: str
    address: str = ""
    kind: str = ""


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """School paired with the phonetic key of its name."""

    school: SchoolRecord
    phonetic_key: str


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Fully merged directory as of one load cycle."""

    entries: Tuple[IndexEntry, ...]
    loaded_at: datetime
    region_counts: Dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def schools(self) -> List[SchoolRecord]:
        return [entry.school for entry in self.entries]


@dataclass(slots=True)
class MealData:
    menu: List[str]
    calories: float = 0.0


@dataclass(frozen=True, slots=True)
class RefreshStatus:
    entry_count: int
    last_refresh: datetime | None
    in_progress: bool
