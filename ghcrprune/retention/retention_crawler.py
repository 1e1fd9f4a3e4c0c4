"""
Paginated crawler over package versions.

Pages are requested one at a time until a page comes back shorter than the
page size. A package whose version count is an exact multiple of the page
size therefore costs one extra, empty request.
"""

from typing import Awaitable, Callable, List, Optional, Sequence

from ghcrprune.connectors.base import Version
from ghcrprune.errors import UpstreamListError

PAGE_SIZE = 100

ListVersions = Callable[[int, int], Awaitable[Sequence[Version]]]
PageCallback = Callable[[int, int, int], None]


async def get_pruning_list(
    list_versions: ListVersions,
    pruning_filter: Callable[[Version], bool],
    page_size: int = PAGE_SIZE,
    on_page: Optional[PageCallback] = None,
) -> List[Version]:
    """
    Crawl every page of versions and collect the prune candidates.

    Args:
        list_versions: Awaitable listing capability ``(page_size, page)``
        pruning_filter: Predicate returning True for prune candidates
        page_size: Number of versions requested per page
        on_page: Optional ``(page, fetched, matched)`` progress callback

    Returns:
        Prune candidates in crawl order

    Raises:
        UpstreamListError: If any page request fails
    """
    pruning_list: List[Version] = []
    page = 1

    while True:
        try:
            versions = await list_versions(page_size, page)
        except Exception as e:
            raise UpstreamListError(f"Failed to list versions on page {page}: {e}", page=page) from e

        page_pruning_list = [version for version in versions if pruning_filter(version)]
        pruning_list.extend(page_pruning_list)

        if on_page is not None:
            on_page(page, len(versions), len(page_pruning_list))

        if len(versions) < page_size:
            return pruning_list

        page += 1
