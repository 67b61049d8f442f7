"""
GitHub Lists synchronization.

Mirrors the categorization onto the user's GitHub Lists: one list per
taxonomy category (named ``"<emoji> <name>"``), each successfully analyzed
repository assigned to the list of its category. Assignments are batched
into one GraphQL mutation per ``SYNC_BATCH_SIZE`` repositories to stay
under GitHub's payload limits, and only a couple of mutations run at a time
to stay clear of the secondary rate limits on mutations.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

import structlog

from .github import GitHubClient
from .models import AnalysisRecord, GitHubList
from .taxonomy import CATEGORIES, Category

log = structlog.get_logger(__name__)


def plan_assignments(
    records: Iterable[AnalysisRecord], lists: Iterable[GitHubList]
) -> list[tuple[str, str]]:
    """
    Pair each successful record's repository with its category's list.

    Failed records, records whose category has no list, and repositories
    without a GraphQL node id are left out.
    """
    list_ids = {lst.category_name: lst.id for lst in lists}
    assignments = []
    for record in records:
        if record.failed:
            continue
        list_id = list_ids.get(record.categorization.category)
        if list_id is None:
            log.warning(
                "No list for category; skipping",
                repo=record.repo.full_name,
                category=record.categorization.category,
            )
            continue
        if not record.repo.node_id:
            log.warning("Repository has no node id; skipping", repo=record.repo.full_name)
            continue
        assignments.append((list_id, record.repo.node_id))
    return assignments


def batched(items: list, size: int) -> list[list]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class ListSynchronizer:
    def __init__(self, client: GitHubClient, batch_size: int = 10, concurrency: int = 2):
        self.client = client
        self.batch_size = max(1, batch_size)
        self.concurrency = max(1, concurrency)

    def clear_all_lists(self) -> int:
        """Delete every existing list. Returns how many were deleted."""
        lists = self.client.get_all_lists()
        log.info("Clearing existing lists", list_count=len(lists))
        if not lists:
            return 0
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            # list() re-raises the first deletion failure
            list(executor.map(lambda lst: self.client.delete_list(lst.id), lists))
        return len(lists)

    def create_lists(self, categories: Iterable[Category] = CATEGORIES) -> list[GitHubList]:
        """Create one list per category, reusing lists that already exist."""
        existing = {lst.name: lst for lst in self.client.get_all_lists()}
        to_create = [c for c in categories if c.label not in existing]
        reused = [existing[c.label] for c in categories if c.label in existing]

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            created = list(
                executor.map(lambda c: self.client.create_list(c.label, c.description), to_create)
            )
        lists = reused + [lst for lst in created if lst is not None]
        log.info("Lists ready", created=len(created), reused=len(reused))
        return lists

    def assign_repos_to_lists(
        self,
        records: Iterable[AnalysisRecord],
        lists: Iterable[GitHubList],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> int:
        """
        Assign repositories to their category lists in batches.

        Returns the number of repositories assigned.
        """
        assignments = plan_assignments(records, lists)
        total = len(assignments)
        batches = batched(assignments, self.batch_size)
        log.info("Assigning repositories to lists", repo_count=total, batch_count=len(batches))

        completed = 0
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for batch in executor.map(self._assign_batch, batches):
                completed += len(batch)
                if on_progress is not None:
                    on_progress(completed, total)
        return total

    def _assign_batch(self, batch: list[tuple[str, str]]) -> list[tuple[str, str]]:
        self.client.assign_items(batch)
        return batch
