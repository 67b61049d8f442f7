"""
Categorization domain package.

This package contains:

- the fixed category taxonomy and its matching rules
- the classification provider (prompt + parsing + LLM calls)
- the cache-first concurrent analysis pipeline
- the GitHub client and the GitHub Lists synchronizer
- report generation and the command-line entrypoint
"""

from .cache import AnalysisCache, RepoListCache
from .models import (
    AnalysisRecord,
    AnalyzerProgress,
    AnalyzerStats,
    Categorization,
    ClassifierResponse,
    Repository,
)
from .pipeline import AnalysisPipeline
from .provider import ClassificationProvider, Classifier, parse_classification_response
from .taxonomy import CATEGORIES, Category, match_category

__all__ = [
    "AnalysisCache",
    "AnalysisPipeline",
    "AnalysisRecord",
    "AnalyzerProgress",
    "AnalyzerStats",
    "CATEGORIES",
    "Categorization",
    "Category",
    "ClassificationProvider",
    "Classifier",
    "ClassifierResponse",
    "RepoListCache",
    "Repository",
    "match_category",
    "parse_classification_response",
]
