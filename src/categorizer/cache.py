"""
On-disk caches
==============

Two JSON caches live under ``CACHE_DIR``:

- `AnalysisCache`: one file per repository under ``analysis/``, holding the
  last successful `AnalysisRecord`. Entries never expire; delete the file
  (or the directory) to force re-analysis.
- `RepoListCache`: the fetched list of starred repositories, reused while
  younger than ``CACHE_MAX_AGE_HOURS``.

Reads are fail-open: a missing or corrupt entry behaves like a cache miss so a
damaged file never stops a run. Writes are atomic per entry (write to a
temporary sibling, then ``os.replace``).
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

import structlog

from common.utils import utc_now_iso

from .errors import CacheError
from .models import AnalysisRecord, Repository

log = structlog.get_logger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9-]")


def slugify(full_name: str) -> str:
    """
    Turn ``owner/name`` into a file-name-safe, case-preserving key.

    Every character outside ``[a-zA-Z0-9-]`` (the slash included) becomes
    ``_<hex code point>_``, so distinct names never share a key:
    ``vercel/next.js`` is ``vercel_2f_next_2e_js``.
    """
    return _UNSAFE_CHARS_RE.sub(lambda m: f"_{ord(m.group()):x}_", full_name)


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` so readers see either the old or the new file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise CacheError(f"Failed to write JSON file: {path}", {"error": str(e)}) from e


@dataclass(frozen=True)
class CacheLookup:
    status: Literal["found", "absent", "corrupt"]
    record: AnalysisRecord | None = None
    reason: str | None = None

    @property
    def hit(self) -> bool:
        return self.status == "found"


class AnalysisCache:
    """Permanent per-repository cache of analysis records."""

    def __init__(self, cache_dir: str | Path):
        self.analysis_dir = Path(cache_dir) / "analysis"

    def path_for(self, full_name: str) -> Path:
        return self.analysis_dir / f"{slugify(full_name)}.json"

    def lookup(self, full_name: str) -> CacheLookup:
        """
        Look up a repository, distinguishing a miss from a corrupt entry.

        Returned records are always flagged ``cached=True``.
        """
        path = self.path_for(full_name)
        if not path.is_file():
            return CacheLookup("absent")
        try:
            with path.open(encoding="utf-8") as handle:
                data = json.load(handle)
            record = AnalysisRecord.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            # json.JSONDecodeError is a ValueError
            log.warning(
                "Ignoring unreadable analysis cache entry",
                repo=full_name,
                path=str(path),
                error=str(e),
            )
            return CacheLookup("corrupt", reason=str(e))
        if record.repo.full_name != full_name:
            log.warning(
                "Ignoring analysis cache entry for another repository",
                repo=full_name,
                stored_repo=record.repo.full_name,
                path=str(path),
            )
            return CacheLookup("corrupt", reason=f"entry belongs to {record.repo.full_name}")
        return CacheLookup("found", record=record.as_cached())

    def get(self, full_name: str) -> AnalysisRecord | None:
        return self.lookup(full_name).record

    def put(self, record: AnalysisRecord) -> None:
        """Persist a record, overwriting any previous entry for the repository."""
        write_json_atomic(self.path_for(record.repo.full_name), record.to_dict())

    def has(self, full_name: str) -> bool:
        return self.path_for(full_name).is_file()


class RepoListCache:
    """Time-limited cache of the fetched starred repository list."""

    def __init__(self, cache_dir: str | Path, max_age_hours: int):
        self.path = Path(cache_dir) / "starred-repos.json"
        self.max_age_hours = max_age_hours

    def _read(self) -> tuple[datetime, list[Repository]] | None:
        if not self.path.is_file():
            return None
        try:
            with self.path.open(encoding="utf-8") as handle:
                data = json.load(handle)
            saved_at = _parse_timestamp(data["timestamp"])
            repos = [Repository.from_dict(item) for item in data["repos"]]
        except (OSError, ValueError, KeyError, TypeError) as e:
            log.warning("Ignoring unreadable repository list cache", error=str(e))
            return None
        return saved_at, repos

    def _age_seconds(self, saved_at: datetime) -> float:
        return (datetime.now(timezone.utc) - saved_at).total_seconds()

    def load(self) -> list[Repository] | None:
        """Return the cached list, or None when missing, unreadable or stale."""
        cached = self._read()
        if cached is None:
            return None
        saved_at, repos = cached
        if self._age_seconds(saved_at) >= self.max_age_hours * 3600:
            log.info("Repository list cache expired", max_age_hours=self.max_age_hours)
            return None
        return repos

    def save(self, repos: list[Repository]) -> None:
        write_json_atomic(
            self.path,
            {"timestamp": utc_now_iso(), "repos": [repo.to_dict() for repo in repos]},
        )

    def age(self) -> str | None:
        """Human-readable age of the cached list, e.g. ``"5h 12m"``."""
        cached = self._read()
        if cached is None:
            return None
        seconds = max(0, int(self._age_seconds(cached[0])))
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
