"""
Data records passed between the fetch layer, the analysis pipeline, the
caches, the reporter and the list synchronizer.

The JSON shape of an `AnalysisRecord` is the on-disk cache format, so the
field names in `to_dict` / `from_dict` must stay stable across releases.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

DEFAULT_REASONING = "No reasoning provided."


@dataclass(frozen=True)
class Repository:
    full_name: str
    node_id: str = ""
    description: str | None = None
    language: str | None = None
    topics: tuple[str, ...] = ()
    html_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Repository":
        full_name = data.get("full_name")
        if not isinstance(full_name, str) or not full_name:
            raise ValueError("Repository payload has no full_name")
        topics = data.get("topics") or []
        if not isinstance(topics, list):
            topics = []
        return cls(
            full_name=full_name,
            node_id=str(data.get("node_id") or ""),
            description=data.get("description") or None,
            language=data.get("language") or None,
            topics=tuple(str(t) for t in topics),
            html_url=str(data.get("html_url") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "node_id": self.node_id,
            "description": self.description,
            "language": self.language,
            "topics": list(self.topics),
            "html_url": self.html_url,
        }


@dataclass(frozen=True)
class Categorization:
    category: str
    confidence: int
    reasoning: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Categorization":
        category = data.get("category")
        if not isinstance(category, str) or not category:
            raise ValueError("Categorization payload has no category")
        return cls(
            category=category,
            confidence=int(data.get("confidence", 0)),
            reasoning=str(data.get("reasoning") or "").strip() or DEFAULT_REASONING,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class ClassifierResponse:
    """What a single classifier call produced."""

    categorization: Categorization
    web_search_calls: int = 0
    tokens_used: int = 0


@dataclass(frozen=True)
class AnalysisRecord:
    repo: Repository
    categorization: Categorization
    web_search_calls: int
    cached: bool
    timestamp: str
    failed: bool = False
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisRecord":
        if not isinstance(data, dict):
            raise ValueError("Analysis record is not a JSON object")
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str):
            raise ValueError("Analysis record has no timestamp")
        return cls(
            repo=Repository.from_dict(data["repo"]),
            categorization=Categorization.from_dict(data["categorization"]),
            web_search_calls=int(data.get("webSearchCalls", 0)),
            cached=bool(data.get("cached", False)),
            timestamp=timestamp,
            failed=bool(data.get("failed", False)),
            error=data.get("error"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "repo": self.repo.to_dict(),
            "categorization": self.categorization.to_dict(),
            "webSearchCalls": self.web_search_calls,
            "cached": self.cached,
            "timestamp": self.timestamp,
        }
        if self.failed:
            data["failed"] = True
            data["error"] = self.error
        return data

    def as_cached(self) -> "AnalysisRecord":
        return replace(self, cached=True)


@dataclass
class AnalyzerStats:
    total: int = 0
    analyzed: int = 0
    cached: int = 0
    failed: int = 0
    total_tokens: int = 0
    total_web_searches: int = 0

    def copy(self) -> "AnalyzerStats":
        return replace(self)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "analyzed": self.analyzed,
            "cached": self.cached,
            "failed": self.failed,
            "totalTokens": self.total_tokens,
            "totalWebSearches": self.total_web_searches,
        }


@dataclass(frozen=True)
class AnalyzerProgress:
    current: int
    total: int
    repo: str
    cached: bool
    category: str | None = None
    confidence: int | None = None
    elapsed_ms: int | None = None
    tokens_used: int | None = None


@dataclass(frozen=True)
class GitHubList:
    id: str
    name: str
    description: str = ""

    @property
    def category_name(self) -> str:
        """List name without its emoji prefix."""
        _, sep, rest = self.name.partition(" ")
        return rest if sep else self.name


@dataclass
class Report:
    timestamp: str
    total_repos: int
    categories: dict[str, dict[str, Any]] = field(default_factory=dict)
    stats: AnalyzerStats = field(default_factory=AnalyzerStats)
    failed_repos: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalRepos": self.total_repos,
            "categories": self.categories,
            "stats": self.stats.to_dict(),
            "failedRepos": self.failed_repos,
        }
