"""Capability clients and the task handlers built from them.

Usage::

    from sentiflow.capabilities import create_capabilities, task_handlers

    capabilities = create_capabilities(settings)   # http or stub clients
    handlers = task_handlers(capabilities)         # name → async handler
    engine = WorkflowEngine(handlers)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable

from sentiflow.capabilities.base import (
    CapabilityError,
    CapabilitySet,
    CapabilityUnavailableError,
    DetectedLanguage,
    LanguageDetector,
    Sentiment,
    SentimentAnalyzer,
    SentimentResult,
    SentimentScores,
    Translation,
    Translator,
    sentiment_to_dict,
)
from sentiflow.capabilities.http_clients import (
    HTTPCapabilityConfig,
    HTTPLanguageDetector,
    HTTPSentimentAnalyzer,
    HTTPTranslator,
)
from sentiflow.capabilities.stub import (
    StubLanguageDetector,
    StubSentimentAnalyzer,
    StubTranslator,
)
from sentiflow.config.settings import Settings

logger = logging.getLogger(__name__)

TaskHandler = Callable[[Mapping[str, Any]], Awaitable[dict[str, Any]]]

DETECT_DOMINANT_LANGUAGE = "DetectDominantLanguage"
TRANSLATE_TEXT = "TranslateText"
DETECT_SENTIMENT = "DetectSentiment"


def create_capabilities(settings: Settings) -> CapabilitySet:
    """Instantiate the capability clients selected by ``CAPABILITY_PROVIDER``."""
    if settings.CAPABILITY_PROVIDER == "http":
        def config(endpoint: str) -> HTTPCapabilityConfig:
            return HTTPCapabilityConfig(
                endpoint=endpoint,
                api_key=settings.CAPABILITY_API_KEY,
                timeout_seconds=settings.TASK_TIMEOUT_SECONDS,
            )

        logger.info("Using HTTP capability clients")
        return CapabilitySet(
            language_detector=HTTPLanguageDetector(config(settings.LANGUAGE_ENDPOINT)),
            translator=HTTPTranslator(config(settings.TRANSLATE_ENDPOINT)),
            sentiment_analyzer=HTTPSentimentAnalyzer(config(settings.SENTIMENT_ENDPOINT)),
        )

    logger.info("Using stub capability clients")
    return CapabilitySet(
        language_detector=StubLanguageDetector(),
        translator=StubTranslator(),
        sentiment_analyzer=StubSentimentAnalyzer(),
    )


def task_handlers(capabilities: CapabilitySet) -> dict[str, TaskHandler]:
    """Expose the capability clients as named Task handlers.

    Each handler takes the request a Task state built from its document
    and returns the response that gets merged back into it.
    """

    async def detect_dominant_language(request: Mapping[str, Any]) -> dict[str, Any]:
        languages = await capabilities.language_detector.detect_dominant_language(
            request["Text"]
        )
        ordered = sorted(languages, key=lambda d: d.score, reverse=True)
        return {
            "Languages": [
                {"LanguageCode": d.code, "Score": d.score} for d in ordered
            ],
        }

    async def translate_text(request: Mapping[str, Any]) -> dict[str, Any]:
        translation = await capabilities.translator.translate_text(
            request["Text"],
            request["SourceLanguageCode"],
            request["TargetLanguageCode"],
        )
        return {
            "TranslatedText": translation.translated_text,
            "SourceLanguageCode": translation.source_language,
            "TargetLanguageCode": translation.target_language,
        }

    async def detect_sentiment(request: Mapping[str, Any]) -> dict[str, Any]:
        result = await capabilities.sentiment_analyzer.detect_sentiment(
            request["Text"], request["LanguageCode"]
        )
        return sentiment_to_dict(result)

    return {
        DETECT_DOMINANT_LANGUAGE: detect_dominant_language,
        TRANSLATE_TEXT: translate_text,
        DETECT_SENTIMENT: detect_sentiment,
    }


__all__ = [
    "CapabilityError",
    "CapabilitySet",
    "CapabilityUnavailableError",
    "DetectedLanguage",
    "LanguageDetector",
    "Sentiment",
    "SentimentAnalyzer",
    "SentimentResult",
    "SentimentScores",
    "Translation",
    "Translator",
    "TaskHandler",
    "DETECT_DOMINANT_LANGUAGE",
    "TRANSLATE_TEXT",
    "DETECT_SENTIMENT",
    "create_capabilities",
    "task_handlers",
]
