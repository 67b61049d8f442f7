from unittest.mock import MagicMock

import pytest

from categorizer.models import AnalysisRecord, Categorization, GitHubList, Repository
from categorizer.pipeline import failed_record
from categorizer.sync import ListSynchronizer, batched, plan_assignments
from categorizer.taxonomy import CATEGORIES, get_category


def record(full_name, category, node_id=None):
    if node_id is None:
        node_id = f"R_{full_name}"
    return AnalysisRecord(
        repo=Repository(full_name=full_name, node_id=node_id),
        categorization=Categorization(category, 80, "r"),
        web_search_calls=0,
        cached=False,
        timestamp="2025-01-01T00:00:00.000Z",
    )


LISTS = [
    GitHubList(id="UL_test", name="🧪 Testing & QA"),
    GitHubList(id="UL_cli", name="💻 CLI & Terminal"),
]


@pytest.fixture
def client():
    return MagicMock()


def test_plan_assignments_skips_unsyncable_records():
    records = [
        record("a/test", "Testing & QA"),
        record("b/cli", "CLI & Terminal"),
        record("c/nolist", "Dev Tooling"),
        record("d/nonode", "Testing & QA", node_id=""),
        failed_record(Repository(full_name="e/failed", node_id="R_e"), "boom"),
    ]

    assert plan_assignments(records, LISTS) == [
        ("UL_test", "R_a/test"),
        ("UL_cli", "R_b/cli"),
    ]


def test_batched():
    assert batched([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert batched([], 3) == []


def test_clear_all_lists_deletes_each_list(client):
    client.get_all_lists.return_value = LISTS

    deleted = ListSynchronizer(client).clear_all_lists()

    assert deleted == 2
    assert sorted(c.args[0] for c in client.delete_list.call_args_list) == ["UL_cli", "UL_test"]


def test_clear_all_lists_with_no_lists(client):
    client.get_all_lists.return_value = []

    assert ListSynchronizer(client).clear_all_lists() == 0
    client.delete_list.assert_not_called()


def test_clear_all_lists_propagates_failures(client):
    client.get_all_lists.return_value = LISTS
    client.delete_list.side_effect = RuntimeError("forbidden")

    with pytest.raises(RuntimeError, match="forbidden"):
        ListSynchronizer(client).clear_all_lists()


def test_create_lists_creates_missing_and_reuses_existing(client):
    existing = GitHubList(id="UL_test", name=get_category("Testing & QA").label)
    client.get_all_lists.return_value = [existing]
    client.create_list.side_effect = lambda name, description: GitHubList(
        id=f"new-{name}", name=name, description=description
    )

    lists = ListSynchronizer(client).create_lists()

    assert len(lists) == len(CATEGORIES)
    assert existing in lists
    assert client.create_list.call_count == len(CATEGORIES) - 1
    created_names = {c.args[0] for c in client.create_list.call_args_list}
    assert existing.name not in created_names
    assert {lst.category_name for lst in lists} == {c.name for c in CATEGORIES}


def test_create_lists_skips_lists_github_did_not_return(client):
    client.get_all_lists.return_value = []
    client.create_list.return_value = None

    assert ListSynchronizer(client).create_lists(CATEGORIES[:2]) == []


def test_assign_repos_to_lists_batches_and_reports_progress(client):
    records = [record(f"org/r{i}", "Testing & QA") for i in range(5)]
    progress = []

    assigned = ListSynchronizer(client, batch_size=2).assign_repos_to_lists(
        records, LISTS, on_progress=lambda done, total: progress.append((done, total))
    )

    assert assigned == 5
    assert client.assign_items.call_count == 3
    assert sorted(len(c.args[0]) for c in client.assign_items.call_args_list) == [1, 2, 2]
    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_assign_repos_to_lists_with_nothing_to_assign(client):
    assigned = ListSynchronizer(client).assign_repos_to_lists([], LISTS)

    assert assigned == 0
    client.assign_items.assert_not_called()
