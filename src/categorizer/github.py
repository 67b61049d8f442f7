"""
GitHub API Client
=================

This module provides a small client for the parts of the GitHub API the
categorizer needs: listing the authenticated user's starred repositories
(REST, paginated) and managing user Lists (GraphQL).

Reads are retried on transport errors. Mutations are sent once, since a
retried ``createUserList`` could create duplicates.
"""

from __future__ import annotations

from typing import Any, Generator, Iterable

import requests
import structlog

from common.config import Settings
from common.utils import retry

from .errors import ConfigurationError, GitHubAPIError
from .models import GitHubList, Repository

log = structlog.get_logger(__name__)

LISTS_QUERY = "query { viewer { lists(first: 100) { nodes { id name description } } } }"

DELETE_LIST_MUTATION = """
mutation DeleteList($id: ID!) {
  deleteUserList(input: { listId: $id }) {
    clientMutationId
  }
}
""".strip()

CREATE_LIST_MUTATION = """
mutation CreateList($name: String!, $description: String!) {
  createUserList(input: { name: $name, description: $description, isPrivate: false }) {
    list {
      id
      name
      description
    }
  }
}
""".strip()


def build_assign_mutation(assignments: list[tuple[str, str]]) -> tuple[str, dict[str, str]]:
    """
    Build one aliased mutation assigning each ``(list_id, item_id)`` pair.
    """
    declarations = []
    fields = []
    variables: dict[str, str] = {}
    for index, (list_id, item_id) in enumerate(assignments):
        declarations.append(f"$list{index}: ID!, $item{index}: ID!")
        fields.append(
            f"  assign{index}: updateUserListsForItem("
            f"input: {{ listIds: [$list{index}], itemId: $item{index} }}) {{ clientMutationId }}"
        )
        variables[f"list{index}"] = list_id
        variables[f"item{index}"] = item_id
    query = f"mutation BatchAssign({', '.join(declarations)}) {{\n" + "\n".join(fields) + "\n}"
    return query, variables


class GitHubClient:
    """A client for interacting with the GitHub REST and GraphQL APIs."""

    def __init__(self, settings: Settings):
        """Initializes the client with a session and authentication."""
        if not settings.GITHUB_TOKEN:
            raise ConfigurationError(
                "Required environment variable 'GITHUB_TOKEN' (or 'GH_TOKEN') is not set."
            )
        self.settings = settings
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {settings.GITHUB_TOKEN}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "categorize-stars",
            }
        )

    def close(self) -> None:
        self._session.close()

    @retry(retryable_exceptions=(requests.exceptions.RequestException,))
    def _get(self, *args, **kwargs) -> requests.Response:
        """A retriable version of session.get."""
        return self._session.get(*args, timeout=self.settings.REQUEST_TIMEOUT, **kwargs)

    @retry(retryable_exceptions=(requests.exceptions.RequestException,))
    def _post_query(self, *args, **kwargs) -> requests.Response:
        """A retriable POST, only for read-only GraphQL queries."""
        return self._session.post(*args, timeout=self.settings.REQUEST_TIMEOUT, **kwargs)

    def _post(self, *args, **kwargs) -> requests.Response:
        return self._session.post(*args, timeout=self.settings.REQUEST_TIMEOUT, **kwargs)

    def _list_all(self, url: str) -> Generator[dict, None, None]:
        """
        Generator that follows GitHub's ``Link`` pagination and yields every item.
        """
        while url:
            response = self._get(url)
            _raise_for_status(response, "GET", url)
            yield from response.json()
            url = response.links.get("next", {}).get("url")

    def fetch_starred_repos(self) -> list[Repository]:
        """Return every repository the authenticated user has starred."""
        url = f"{self.settings.GITHUB_API_URL}/user/starred?per_page=100"
        repos = []
        for item in self._list_all(url):
            try:
                repos.append(Repository.from_dict(item))
            except ValueError:
                log.warning("Skipping starred item without full_name", item_keys=sorted(item))
        log.info("Fetched starred repositories", repo_count=len(repos))
        return repos

    def get_username(self) -> str:
        url = f"{self.settings.GITHUB_API_URL}/user"
        response = self._get(url)
        _raise_for_status(response, "GET", url)
        return response.json()["login"]

    def graphql(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        *,
        mutation: bool = False,
    ) -> dict:
        """
        Run a GraphQL document and return its ``data`` object.

        GraphQL reports many failures with HTTP 200 and an ``errors`` array;
        both kinds of failure raise `GitHubAPIError`.
        """
        url = f"{self.settings.GITHUB_API_URL}/graphql"
        payload = {"query": query, "variables": variables or {}}
        send = self._post if mutation else self._post_query
        response = send(url, json=payload)
        _raise_for_status(response, "POST", url)
        body = response.json()
        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) for e in errors)
            if "Resource not accessible" in messages:
                log.error(
                    "Token cannot manage lists; it needs the 'user' scope "
                    "(classic PAT) or list permissions (fine-grained PAT)"
                )
            raise GitHubAPIError(f"GraphQL request failed: {messages}")
        return body.get("data") or {}

    def get_all_lists(self) -> list[GitHubList]:
        data = self.graphql(LISTS_QUERY)
        nodes = ((data.get("viewer") or {}).get("lists") or {}).get("nodes") or []
        return [
            GitHubList(id=n["id"], name=n["name"], description=n.get("description") or "")
            for n in nodes
        ]

    def delete_list(self, list_id: str) -> None:
        self.graphql(DELETE_LIST_MUTATION, {"id": list_id}, mutation=True)

    def create_list(self, name: str, description: str) -> GitHubList | None:
        data = self.graphql(
            CREATE_LIST_MUTATION, {"name": name, "description": description}, mutation=True
        )
        node = (data.get("createUserList") or {}).get("list")
        if not node:
            return None
        return GitHubList(
            id=node["id"], name=node["name"], description=node.get("description") or ""
        )

    def assign_items(self, assignments: Iterable[tuple[str, str]]) -> None:
        """Put each ``(list_id, item_id)`` pair in one batched mutation."""
        assignments = list(assignments)
        if not assignments:
            return
        query, variables = build_assign_mutation(assignments)
        self.graphql(query, variables, mutation=True)


def _raise_for_status(response: requests.Response, method: str, url: str) -> None:
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise GitHubAPIError(
            f"GitHub {method} {url} failed: {e}", status_code=response.status_code
        ) from e
