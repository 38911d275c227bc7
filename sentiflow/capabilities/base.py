"""Capability client abstraction layer.

Defines the provider-agnostic interfaces for the three text-analysis
capabilities the sentiment workflow depends on:

    1. LanguageDetector  — dominant language identification
    2. Translator        — machine translation between language codes
    3. SentimentAnalyzer — sentiment classification with per-class scores

Two providers implement them: ``http`` (JSON services reached with
httpx) and ``stub`` (deterministic, in-process, for development and
tests).  The workflow engine never sees these classes directly; it
calls the named task handlers built by ``sentiflow.capabilities.task_handlers``.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Shared types
# ---------------------------------------------------------------------------


class Sentiment(str, enum.Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    MIXED = "MIXED"


@dataclass(frozen=True)
class DetectedLanguage:
    """One candidate language with its confidence score."""
    code: str
    score: float


@dataclass(frozen=True)
class Translation:
    translated_text: str
    source_language: str
    target_language: str


@dataclass(frozen=True)
class SentimentScores:
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 0.0
    mixed: float = 0.0


@dataclass(frozen=True)
class SentimentResult:
    sentiment: Sentiment
    scores: SentimentScores = field(default_factory=SentimentScores)


class CapabilityError(Exception):
    """Raised when a capability call fails irrecoverably."""


class CapabilityUnavailableError(CapabilityError):
    """Raised when a capability is unreachable or overloaded — retryable."""


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class LanguageDetector(abc.ABC):
    @abc.abstractmethod
    async def detect_dominant_language(self, text: str) -> list[DetectedLanguage]:
        """Candidate languages, ordered by score descending."""


class Translator(abc.ABC):
    @abc.abstractmethod
    async def translate_text(
        self,
        text: str,
        source_language: str,
        target_language: str,
    ) -> Translation:
        ...


class SentimentAnalyzer(abc.ABC):
    @abc.abstractmethod
    async def detect_sentiment(self, text: str, language_code: str) -> SentimentResult:
        ...


@dataclass
class CapabilitySet:
    """The three capability clients a sentiment workflow is wired with."""
    language_detector: LanguageDetector
    translator: Translator
    sentiment_analyzer: SentimentAnalyzer


def sentiment_to_dict(result: SentimentResult) -> dict[str, Any]:
    """Wire shape of a sentiment result."""
    return {
        "Sentiment": result.sentiment.value,
        "SentimentScore": {
            "Positive": result.scores.positive,
            "Negative": result.scores.negative,
            "Neutral": result.scores.neutral,
            "Mixed": result.scores.mixed,
        },
    }
