"""
Repository Classification Provider
==================================

This module turns a starred repository into exactly one taxonomy category
using an OpenAI-compatible chat completion. It owns the prompt, the parsing
of the model's JSON answer, and the normalization of that answer onto the
closed category set.

A call to `ClassificationProvider.classify` is a single attempt. Failures are
raised as `ClassifierAPIError` with a ``retryable`` verdict; retrying is the
caller's job (see `common.utils.call_with_retry`).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

import openai
import structlog

from common.config import Settings

from .errors import (
    ClassifierAPIError,
    MalformedResponseError,
    extract_status_code,
    is_retryable_error,
)
from .models import DEFAULT_REASONING, Categorization, ClassifierResponse, Repository
from .taxonomy import CATEGORIES, FALLBACK_CATEGORY, Category, match_category

log = structlog.get_logger(__name__)

CLASSIFICATION_PROMPT = """
You categorize GitHub repositories into EXACTLY ONE category based on their
PRIMARY purpose.

Available categories:
{category_list}

Guidelines:
- Focus on the PRIMARY purpose, not secondary features
- "Learning Resources" includes: awesome lists, tutorials, algorithm collections, cheatsheets
- "Databases & Auth" includes: ORMs (Prisma), auth libraries (NextAuth), databases (Neon)
- "Utilities & Libraries" includes: general utilities (Ramda), type libraries (type-fest), converters
- "Other Tools" is a fallback for repos that truly don't fit elsewhere

Always reply only with a single, valid JSON object. Do not wrap it in markdown
or add explanations:
{{"category": "Category Name", "confidence": 85, "reasoning": "Brief explanation"}}

- category: one of the category names above, spelled exactly as listed
- confidence: integer from 0 to 100
- reasoning: one short sentence
""".strip()


def format_category_list(categories: tuple[Category, ...] = CATEGORIES) -> str:
    return "\n".join(f"- {c.emoji} {c.name}: {c.description}" for c in categories)


def build_prompt(repo: Repository) -> str:
    """Describe one repository for the model."""
    return (
        f"Repository: {repo.full_name}\n"
        f"Description: {repo.description or 'No description'}\n"
        f"Language: {repo.language or 'Unknown'}\n"
        f"Topics: {', '.join(repo.topics) or 'None'}\n\n"
        "JSON Response:"
    )


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON string literals are ignored, so reasoning text such
    as ``"uses {curly} templates"`` does not end the object early.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def _coerce_confidence(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip().rstrip("%")))
        except ValueError:
            return 0
    return 0


def parse_classification_response(text: str) -> Categorization:
    """
    Parse, validate and normalize the model's answer.

    The category is mapped onto the taxonomy; answers matching no category
    are filed under the fallback category with a note in the reasoning.
    """
    snippet = extract_json_object(text or "")
    if snippet is None:
        raise MalformedResponseError("No JSON found in response")

    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON in response: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Classification response is not a JSON object")

    category = data.get("category")
    if not isinstance(category, str) or not category.strip():
        raise MalformedResponseError("Empty or invalid category in response")

    raw_category = category.strip()
    reasoning = str(data.get("reasoning") or "").strip() or DEFAULT_REASONING
    matched = match_category(raw_category)
    if matched is None:
        log.info("Unknown category from model; using fallback", category=raw_category)
        name = FALLBACK_CATEGORY
        reasoning = f"{reasoning} (Original: {raw_category}. Fallback to {FALLBACK_CATEGORY}.)"
    else:
        name = matched.name

    return Categorization(
        category=name,
        confidence=_coerce_confidence(data.get("confidence")),
        reasoning=reasoning,
    )


def _count_web_searches(message: object) -> int:
    """Count URL citations the endpoint attached to the answer."""
    annotations = getattr(message, "annotations", None) or []
    try:
        return sum(1 for a in annotations if getattr(a, "type", None) == "url_citation")
    except TypeError:
        return 0


def _total_tokens(response: object) -> int:
    usage = getattr(response, "usage", None)
    total = getattr(usage, "total_tokens", None)
    return total if isinstance(total, int) else 0


class Classifier(ABC):
    """Single-attempt repository classifier."""

    model: str

    @abstractmethod
    def classify(self, repo: Repository) -> ClassifierResponse:
        raise NotImplementedError

    def shutdown(self) -> None:
        """Release or flush external connections. Safe to call more than once."""


class ClassificationProvider(Classifier):
    """
    Classification provider that uses OpenAI-compatible chat completions.
    """

    def __init__(self, settings: Settings, model: str | None = None):
        self.settings = settings
        self.model = model or settings.CLASSIFY_MODEL
        self._send_reasoning_effort = bool(settings.CLASSIFY_REASONING_EFFORT)
        self._system_prompt = CLASSIFICATION_PROMPT.format(
            category_list=format_category_list()
        )

    def _create_completion(self, **kwargs):
        """Call the OpenAI-compatible chat completion API once."""
        return openai.chat.completions.create(**kwargs)

    def _build_params(self, repo: Repository) -> dict:
        params = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": build_prompt(repo)},
            ],
            "timeout": self.settings.REQUEST_TIMEOUT,
        }
        if self._send_reasoning_effort:
            params["reasoning_effort"] = self.settings.CLASSIFY_REASONING_EFFORT
        return params

    def _request(self, repo: Repository):
        try:
            return self._create_completion(**self._build_params(repo))
        except openai.BadRequestError as e:
            # Some models reject reasoning_effort; drop it for this provider.
            if not (self._send_reasoning_effort and "reasoning" in str(e).lower()):
                raise
            log.warning(
                "Model rejected reasoning_effort; retrying without it",
                model=self.model,
                error=str(e),
            )
            self._send_reasoning_effort = False
            return self._create_completion(**self._build_params(repo))

    def classify(self, repo: Repository) -> ClassifierResponse:
        """
        Classify one repository. Raises `ClassifierAPIError` on failure.
        """
        try:
            response = self._request(repo)
        except openai.OpenAIError as e:
            raise ClassifierAPIError(
                f"Classifier API error: {e}",
                status_code=extract_status_code(e),
                retryable=is_retryable_error(e),
                cause=e,
            ) from e

        if not response.choices:
            raise MalformedResponseError("Response contained no choices")
        message = response.choices[0].message
        categorization = parse_classification_response(message.content or "")
        web_searches = _count_web_searches(message)
        tokens = _total_tokens(response)

        log.debug(
            "Classified repository",
            repo=repo.full_name,
            model=self.model,
            category=categorization.category,
            confidence=categorization.confidence,
            tokens=tokens,
        )
        return ClassifierResponse(
            categorization=categorization,
            web_search_calls=web_searches,
            tokens_used=tokens,
        )

    def shutdown(self) -> None:
        """Nothing to flush for the plain provider."""
