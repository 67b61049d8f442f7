"""
Analysis Pipeline
=================

`AnalysisPipeline` categorizes a batch of repositories:

- Each repository is looked up in the analysis cache first (unless the
  caller asks to skip it).
- Misses are sent to the classifier under the retry policy, and successful
  results are written back to the cache before they are reported.
- Failures are turned into degraded records and never cached, so the next
  run tries them again.

Work runs in a fixed-size thread pool. The pool only bounds how many
classifications are in flight; rate limits are absorbed reactively by the
retry policy. Results are collected in completion order, and every
repository produces exactly one progress event and exactly one record.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, Literal

import structlog

from common.config import Settings
from common.utils import RetryPolicy, call_with_retry, utc_now_iso

from .cache import AnalysisCache
from .errors import CacheError, is_retryable_error
from .models import (
    AnalysisRecord,
    AnalyzerProgress,
    AnalyzerStats,
    Categorization,
    Repository,
)
from .provider import Classifier
from .taxonomy import UNCATEGORIZED
from .telemetry import build_classifier

log = structlog.get_logger(__name__)

ProgressCallback = Callable[[AnalyzerProgress], None]


@dataclass(frozen=True)
class _Outcome:
    kind: Literal["cached", "analyzed", "failed"]
    record: AnalysisRecord
    elapsed_ms: int | None = None
    tokens_used: int = 0


def failed_record(repo: Repository, error: BaseException | str) -> AnalysisRecord:
    """Degraded record for a repository whose analysis failed."""
    message = str(error)
    return AnalysisRecord(
        repo=repo,
        categorization=Categorization(
            category=UNCATEGORIZED,
            confidence=0,
            reasoning=f"Analysis failed: {message}",
        ),
        web_search_calls=0,
        cached=False,
        timestamp=utc_now_iso(),
        failed=True,
        error=message,
    )


class AnalysisPipeline:
    """
    Cache-first, concurrent categorization of starred repositories.
    """

    def __init__(
        self,
        classifier: Classifier,
        cache: AnalysisCache,
        *,
        concurrency: int = 40,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            classifier: Single-attempt classifier (plain or telemetry-wrapped).
            cache: Permanent analysis cache.
            concurrency: Maximum number of repositories processed at once.
            retry_policy: Attempts and backoff for transient classifier errors.
            sleep: Injectable sleep used between retries (primarily for tests).
            clock: Monotonic clock used for per-repository timings.
        """
        self.classifier = classifier
        self.cache = cache
        self.concurrency = max(1, int(concurrency))
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._stats = AnalyzerStats()
        self._shut_down = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        classifier: Classifier | None = None,
        cache: AnalysisCache | None = None,
    ) -> "AnalysisPipeline":
        return cls(
            classifier or build_classifier(settings),
            cache or AnalysisCache(settings.CACHE_DIR),
            concurrency=settings.CATEGORIZER_CONCURRENCY,
            retry_policy=RetryPolicy(
                max_attempts=settings.RETRY_MAX_ATTEMPTS,
                base_delay=settings.RETRY_BASE_DELAY,
                multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
                max_delay=settings.MAX_RETRY_BACKOFF_SECONDS,
            ),
        )

    def analyze_all(
        self,
        repos: Iterable[Repository],
        skip_cache: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> list[AnalysisRecord]:
        """
        Categorize every repository and return one record per repository.

        Records come back in completion order, not input order. Per-repository
        failures are reported inside the records and never raised.
        """
        repos = list(repos)
        with self._lock:
            self._stats.total = len(repos)
        if not repos:
            return []

        log.info(
            "Analyzing repositories",
            repo_count=len(repos),
            max_workers=self.concurrency,
            skip_cache=skip_cache,
        )

        results: list[AnalysisRecord] = []
        completed = 0
        with ThreadPoolExecutor(max_workers=min(self.concurrency, len(repos))) as executor:
            future_to_repo = {
                executor.submit(self._process, repo, skip_cache): repo for repo in repos
            }
            for future in as_completed(future_to_repo):
                repo = future_to_repo[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    log.exception("Unexpected error analyzing repository", repo=repo.full_name)
                    outcome = _Outcome("failed", failed_record(repo, e))

                completed += 1
                self._record(outcome)
                results.append(outcome.record)
                self._emit(on_progress, outcome, completed, len(repos))

        stats = self.get_stats()
        log.info(
            "Analysis finished",
            total=stats.total,
            analyzed=stats.analyzed,
            cached=stats.cached,
            failed=stats.failed,
            total_tokens=stats.total_tokens,
            total_web_searches=stats.total_web_searches,
        )
        return results

    def _process(self, repo: Repository, skip_cache: bool) -> _Outcome:
        """Cache lookup, then classify-and-store. Runs on a worker thread."""
        if not skip_cache:
            lookup = self.cache.lookup(repo.full_name)
            if lookup.hit:
                return _Outcome("cached", lookup.record)

        started = self._clock()
        try:
            response = call_with_retry(
                self.classifier.classify,
                repo,
                policy=self.retry_policy,
                should_retry=is_retryable_error,
                sleep=self._sleep,
            )
        except Exception as e:
            log.warning("Repository analysis failed", repo=repo.full_name, error=str(e))
            return _Outcome("failed", failed_record(repo, e))

        record = AnalysisRecord(
            repo=repo,
            categorization=response.categorization,
            web_search_calls=response.web_search_calls,
            cached=False,
            timestamp=utc_now_iso(),
        )
        try:
            self.cache.put(record)
        except CacheError as e:
            log.warning("Could not cache analysis", repo=repo.full_name, error=str(e))

        return _Outcome(
            "analyzed",
            record,
            elapsed_ms=int((self._clock() - started) * 1000),
            tokens_used=response.tokens_used,
        )

    def _record(self, outcome: _Outcome) -> None:
        with self._lock:
            if outcome.kind == "cached":
                self._stats.cached += 1
            elif outcome.kind == "analyzed":
                self._stats.analyzed += 1
                self._stats.total_tokens += outcome.tokens_used
                self._stats.total_web_searches += outcome.record.web_search_calls
            else:
                self._stats.failed += 1

    def _emit(
        self,
        on_progress: ProgressCallback | None,
        outcome: _Outcome,
        current: int,
        total: int,
    ) -> None:
        if on_progress is None:
            return
        record = outcome.record
        if outcome.kind == "failed":
            progress = AnalyzerProgress(
                current=current, total=total, repo=record.repo.full_name, cached=False
            )
        else:
            progress = AnalyzerProgress(
                current=current,
                total=total,
                repo=record.repo.full_name,
                cached=outcome.kind == "cached",
                category=record.categorization.category,
                confidence=record.categorization.confidence,
                elapsed_ms=outcome.elapsed_ms,
                tokens_used=outcome.tokens_used if outcome.kind == "analyzed" else None,
            )
        try:
            on_progress(progress)
        except Exception:
            log.exception("Progress callback failed", repo=record.repo.full_name)

    def get_stats(self) -> AnalyzerStats:
        """Snapshot of the running counters."""
        with self._lock:
            return self._stats.copy()

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = AnalyzerStats()

    def shutdown(self) -> None:
        """Flush the classifier's telemetry. Later calls do nothing."""
        if self._shut_down:
            return
        self._shut_down = True
        self.classifier.shutdown()
