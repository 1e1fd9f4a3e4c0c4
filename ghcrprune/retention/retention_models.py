"""
Data models for the retention system.

This module contains the data classes and enums shared by the retention
filter, the keep-last reducer and the prune executor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple

from ghcrprune.connectors.base import Version
from ghcrprune.errors import DeletionError


class Decision(Enum):
    """Outcome of evaluating a version against the retention policy."""
    KEEP = "keep"
    PRUNE = "prune"


@dataclass(frozen=True)
class RetentionPolicy:
    """Configuration for the version retention policy."""
    keep_younger_than_days: int = 0
    prune_untagged: bool = False
    prune_tags_regexes: Tuple[str, ...] = ()
    keep_tags: Tuple[str, ...] = ()
    keep_tags_regexes: Tuple[str, ...] = ()
    keep_last: int = 0


@dataclass
class PruneResult:
    """Outcome of one pruning run."""
    candidates_count: int
    pruned: List[Version] = field(default_factory=list)
    dry_run: bool = False
    error: Optional[DeletionError] = None

    @property
    def pruned_count(self) -> int:
        return len(self.pruned)

    @property
    def pruned_ids(self) -> List[int]:
        return [version.id for version in self.pruned]

    @property
    def all_pruned(self) -> bool:
        return self.pruned_count == self.candidates_count

    @property
    def status(self) -> str:
        return 'success' if self.all_pruned and self.error is None else 'failed'
