"""
Optional Logfire telemetry around the classifier.

When ``LOGFIRE_TOKEN`` is configured, `build_classifier` wraps the provider in
`TelemetryClassifier`, which records one span per classification attempt
(repository, model, outcome, token and web-search counts). The wrapper is
transparent: it returns and raises exactly what the wrapped classifier does,
so the retry wrapper and the pipeline never know it is there.
"""

from __future__ import annotations

import threading
import uuid

import logfire
import structlog

from common.config import Settings

from .models import ClassifierResponse, Repository
from .provider import ClassificationProvider, Classifier

log = structlog.get_logger(__name__)


class TelemetryClassifier(Classifier):
    """Classifier decorator that reports each call to Logfire."""

    def __init__(self, inner: Classifier):
        self.inner = inner
        self.model = inner.model
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

    def classify(self, repo: Repository) -> ClassifierResponse:
        with logfire.span(
            "classify repository {repo}",
            repo=repo.full_name,
            language=repo.language,
            topics=list(repo.topics),
            model=self.model,
            trace_id=str(uuid.uuid4()),
        ) as span:
            result = self.inner.classify(repo)
            span.set_attribute("category", result.categorization.category)
            span.set_attribute("confidence", result.categorization.confidence)
            span.set_attribute("web_search_calls", result.web_search_calls)
            span.set_attribute("tokens_used", result.tokens_used)
            return result

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True
        try:
            self.inner.shutdown()
        finally:
            logfire.force_flush()
            log.debug("Flushed classifier telemetry")


def build_classifier(settings: Settings, model: str | None = None) -> Classifier:
    """
    Build the active classifier, wrapped in telemetry when it is configured.
    """
    provider = ClassificationProvider(settings, model=model)
    if settings.LOGFIRE_TOKEN:
        log.info("Classifier telemetry enabled", service=settings.LOGFIRE_SERVICE_NAME)
        return TelemetryClassifier(provider)
    return provider
