"""
Retention filter.

Classifies a single version as kept or prune candidate. Keep rules always win
over prune rules at every tier:

1. versions younger than ``keep_younger_than_days`` are kept
2. untagged versions are pruned when ``prune_untagged`` is set
3. versions carrying a tag listed in ``keep_tags`` are kept
4. versions with a tag matching ``keep_tags_regexes`` are kept
5. versions with a tag matching ``prune_tags_regexes`` are pruned
6. everything else is kept
"""

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Pattern, Sequence

from ghcrprune.connectors.base import Version
from ghcrprune.errors import ConfigurationError
from ghcrprune.retention.retention_models import Decision, RetentionPolicy

SECONDS_IN_DAY = 60 * 60 * 24


def age_in_days(created_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed between creation and ``now``, floor-rounded."""
    if now is None:
        now = datetime.now(timezone.utc)
    return int((now - created_at).total_seconds() // SECONDS_IN_DAY)


def compile_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    """Compile tag patterns, reporting the first invalid one as a configuration error."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigurationError(f"Invalid tag regex '{pattern}': {e}") from e
    return compiled


def any_regex_match(regexes: Sequence[Pattern[str]], tags: Sequence[str]) -> bool:
    return any(regex.search(tag) for regex in regexes for tag in tags)


class VersionFilter:
    """Retention policy with its tag patterns compiled once."""

    def __init__(self, policy: RetentionPolicy, now: Optional[datetime] = None):
        self.policy = policy
        self.now = now
        self._keep_tags = frozenset(policy.keep_tags)
        self._keep_regexes = compile_patterns(policy.keep_tags_regexes)
        self._prune_regexes = compile_patterns(policy.prune_tags_regexes)

    def decide(self, version: Version) -> Decision:
        if age_in_days(version.created_at, self.now) < self.policy.keep_younger_than_days:
            return Decision.KEEP

        tags = version.tags

        if self.policy.prune_untagged and not tags:
            return Decision.PRUNE

        if any(tag in self._keep_tags for tag in tags):
            return Decision.KEEP

        if any_regex_match(self._keep_regexes, tags):
            return Decision.KEEP

        if any_regex_match(self._prune_regexes, tags):
            return Decision.PRUNE

        return Decision.KEEP

    def __call__(self, version: Version) -> bool:
        return self.decide(version) is Decision.PRUNE


def decide(version: Version, policy: RetentionPolicy, now: Optional[datetime] = None) -> Decision:
    """
    Evaluate one version against a retention policy.

    Args:
        version: Version to classify
        policy: Retention policy to apply
        now: Evaluation time, defaults to the current UTC time

    Returns:
        Decision.PRUNE for prune candidates, Decision.KEEP otherwise
    """
    return VersionFilter(policy, now).decide(version)


def version_filter(policy: RetentionPolicy, now: Optional[datetime] = None) -> Callable[[Version], bool]:
    """Build a predicate that is True for prune candidates."""
    return VersionFilter(policy, now)
