"""
Retention engine for container package versions.

This module provides the pieces of a pruning run:
- Paginated crawling of package versions
- Retention policy evaluation per version
- Keep-last protection of the newest prune candidates
- Sequential, fail-fast pruning with partial-result accounting
"""

from .retention_models import Decision, RetentionPolicy, PruneResult
from .version_filter import decide, version_filter, age_in_days
from .retention_crawler import PAGE_SIZE, get_pruning_list
from .pruning import keep_last_versions, prune_versions

__all__ = [
    'Decision',
    'RetentionPolicy',
    'PruneResult',
    'decide',
    'version_filter',
    'age_in_days',
    'PAGE_SIZE',
    'get_pruning_list',
    'keep_last_versions',
    'prune_versions',
]
