import os

import pytest
import requests

from categorizer.errors import ConfigurationError, GitHubAPIError
from categorizer.github import GitHubClient, build_assign_mutation
from categorizer.models import GitHubList
from common.config import Settings

API = "https://api.github.com"


@pytest.fixture
def settings(mocker):
    """Fixture to create a Settings object for tests."""
    mocker.patch.dict(
        os.environ,
        {
            "OPENAI_API_KEY": "test_api_key",
            "GITHUB_TOKEN": "gh-test-token",
            "GITHUB_MAX_RETRIES": "3",
        },
        clear=True,
    )
    return Settings()


@pytest.fixture
def github_client(settings):
    client = GitHubClient(settings)
    yield client
    client.close()


def test_client_requires_token(settings):
    settings.GITHUB_TOKEN = None

    with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
        GitHubClient(settings)


def test_fetch_starred_repos_follows_pagination(github_client, requests_mock):
    """
    Test that the client follows Link headers and maps every starred repo.
    """
    page2 = f"{API}/user/starred?per_page=100&page=2"
    first = requests_mock.get(
        f"{API}/user/starred?per_page=100",
        json=[
            {
                "full_name": "facebook/react",
                "node_id": "R_react",
                "description": "UI library",
                "language": "JavaScript",
                "topics": ["ui", "frontend"],
                "html_url": "https://github.com/facebook/react",
            },
            {"full_name": "sindresorhus/type-fest", "node_id": "R_tf"},
        ],
        headers={"Link": f'<{page2}>; rel="next", <{page2}>; rel="last"'},
    )
    requests_mock.get(page2, json=[{"full_name": "cli/cli", "node_id": "R_cli"}, {"id": 1}])

    repos = github_client.fetch_starred_repos()

    assert [r.full_name for r in repos] == ["facebook/react", "sindresorhus/type-fest", "cli/cli"]
    assert repos[0].topics == ("ui", "frontend")
    assert repos[0].language == "JavaScript"
    assert repos[1].description is None
    headers = first.last_request.headers
    assert headers["Authorization"] == "Bearer gh-test-token"
    assert headers["Accept"] == "application/vnd.github+json"


def test_get_retries_on_transport_errors(github_client, requests_mock, mocker):
    sleep_mock = mocker.patch("common.utils.time.sleep")
    requests_mock.get(
        f"{API}/user",
        [
            {"exc": requests.exceptions.ConnectTimeout},
            {"json": {"login": "octocat"}},
        ],
    )

    assert github_client.get_username() == "octocat"
    sleep_mock.assert_called_once()


def test_http_errors_raise_github_api_error(github_client, requests_mock):
    requests_mock.get(f"{API}/user/starred?per_page=100", status_code=401, json={})

    with pytest.raises(GitHubAPIError) as excinfo:
        github_client.fetch_starred_repos()

    assert excinfo.value.status_code == 401


def test_get_all_lists(github_client, requests_mock):
    requests_mock.post(
        f"{API}/graphql",
        json={
            "data": {
                "viewer": {
                    "lists": {
                        "nodes": [
                            {"id": "UL_1", "name": "🧪 Testing & QA", "description": "tests"},
                            {"id": "UL_2", "name": "Misc", "description": None},
                        ]
                    }
                }
            }
        },
    )

    lists = github_client.get_all_lists()

    assert lists == [
        GitHubList(id="UL_1", name="🧪 Testing & QA", description="tests"),
        GitHubList(id="UL_2", name="Misc", description=""),
    ]
    assert lists[0].category_name == "Testing & QA"


def test_graphql_errors_raise(github_client, requests_mock):
    requests_mock.post(
        f"{API}/graphql",
        json={"data": None, "errors": [{"message": "Resource not accessible by integration"}]},
    )

    with pytest.raises(GitHubAPIError, match="Resource not accessible"):
        github_client.delete_list("UL_1")


def test_mutations_are_not_retried(github_client, requests_mock, mocker):
    sleep_mock = mocker.patch("common.utils.time.sleep")
    requests_mock.post(f"{API}/graphql", exc=requests.exceptions.ConnectTimeout)

    with pytest.raises(requests.exceptions.ConnectTimeout):
        github_client.create_list("🧪 Testing & QA", "tests")

    assert requests_mock.call_count == 1
    sleep_mock.assert_not_called()


def test_create_list(github_client, requests_mock):
    adapter = requests_mock.post(
        f"{API}/graphql",
        json={
            "data": {
                "createUserList": {
                    "list": {"id": "UL_9", "name": "🧪 Testing & QA", "description": "tests"}
                }
            }
        },
    )

    created = github_client.create_list("🧪 Testing & QA", "tests")

    assert created == GitHubList(id="UL_9", name="🧪 Testing & QA", description="tests")
    body = adapter.last_request.json()
    assert body["variables"] == {"name": "🧪 Testing & QA", "description": "tests"}
    assert "createUserList" in body["query"]


def test_assign_items_sends_one_batched_mutation(github_client, requests_mock):
    adapter = requests_mock.post(f"{API}/graphql", json={"data": {}})

    github_client.assign_items([("UL_1", "R_a"), ("UL_2", "R_b")])

    assert adapter.call_count == 1
    body = adapter.last_request.json()
    assert body["variables"] == {"list0": "UL_1", "item0": "R_a", "list1": "UL_2", "item1": "R_b"}


def test_assign_items_empty_is_a_no_op(github_client, requests_mock):
    adapter = requests_mock.post(f"{API}/graphql", json={"data": {}})

    github_client.assign_items([])

    assert adapter.call_count == 0


def test_build_assign_mutation():
    query, variables = build_assign_mutation([("L1", "I1"), ("L2", "I2")])

    assert query.startswith(
        "mutation BatchAssign($list0: ID!, $item0: ID!, $list1: ID!, $item1: ID!) {"
    )
    assert "assign0: updateUserListsForItem(input: { listIds: [$list0], itemId: $item0 })" in query
    assert "assign1: updateUserListsForItem(input: { listIds: [$list1], itemId: $item1 })" in query
    assert variables == {"list0": "L1", "item0": "I1", "list1": "L2", "item1": "I2"}
