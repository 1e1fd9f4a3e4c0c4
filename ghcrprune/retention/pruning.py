"""
Keep-last reduction and sequential pruning of versions.
"""

from typing import Awaitable, Callable, List, Optional, Sequence

from ghcrprune.connectors.base import Version
from ghcrprune.errors import DeletionError
from ghcrprune.retention.retention_models import PruneResult

PruneVersion = Callable[[Version], Awaitable[None]]


def keep_last_versions(candidates: Sequence[Version], keep_last: int) -> List[Version]:
    """
    Protect the ``keep_last`` most recently created prune candidates.

    Only the candidates themselves are ranked, not every version of the
    package. Ties on ``created_at`` keep their crawl order, and the returned
    candidates stay in crawl order.

    Args:
        candidates: Prune candidates in crawl order
        keep_last: Number of newest candidates to spare

    Returns:
        Candidates that should actually be deleted
    """
    if keep_last < 0:
        raise ValueError(f"keep_last must be non-negative, got {keep_last}")
    if keep_last == 0:
        return list(candidates)

    newest_first = sorted(
        range(len(candidates)),
        key=lambda index: candidates[index].created_at,
        reverse=True,
    )
    survivors = set(newest_first[:keep_last])

    return [version for index, version in enumerate(candidates) if index not in survivors]


async def prune_versions(
    prune_version: PruneVersion,
    pruning_list: Sequence[Version],
    dry_run: bool = False,
    on_pruned: Optional[Callable[[Version], None]] = None,
) -> PruneResult:
    """
    Delete versions one by one, stopping at the first failure.

    Args:
        prune_version: Awaitable deletion capability
        pruning_list: Versions to delete, in deletion order
        dry_run: Recorded on the result as the mode the run used
        on_pruned: Optional callback invoked after each successful deletion

    Returns:
        PruneResult with the versions deleted so far and the error, if any
    """
    result = PruneResult(candidates_count=len(pruning_list), dry_run=dry_run)

    for version in pruning_list:
        try:
            await prune_version(version)
        except Exception as e:
            result.error = DeletionError(
                f"Failed to prune version #{version.id} named '{version.name}': {e}",
                version=version,
            )
            result.error.__cause__ = e
            break

        result.pruned.append(version)
        if on_pruned is not None:
            on_pruned(version)

    return result
