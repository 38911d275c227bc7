"""HTTP capability clients.

Each capability is a JSON-over-HTTP service reached with a POST to a
configured endpoint.  Payloads follow the shapes the workflow uses
internally:

  - language:  ``{"Text"}`` → ``{"Languages": [{"LanguageCode", "Score"}]}``
  - translate: ``{"Text", "SourceLanguageCode", "TargetLanguageCode"}``
               → ``{"TranslatedText", "SourceLanguageCode", "TargetLanguageCode"}``
  - sentiment: ``{"Text", "LanguageCode"}`` → ``{"Sentiment", "SentimentScore"}``

Transport failures, 429 and 5xx responses raise
``CapabilityUnavailableError`` (retried by the engine); any other
failure raises ``CapabilityError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from sentiflow.capabilities.base import (
    CapabilityError,
    CapabilityUnavailableError,
    DetectedLanguage,
    LanguageDetector,
    Sentiment,
    SentimentAnalyzer,
    SentimentResult,
    SentimentScores,
    Translation,
    Translator,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class HTTPCapabilityConfig:
    """Connection settings for one capability endpoint."""
    endpoint: str
    api_key: str = ""
    timeout_seconds: float = 20.0


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class _JSONServiceClient:
    """POSTs JSON to a single endpoint and classifies failures."""

    name = "capability"

    def __init__(
        self,
        config: HTTPCapabilityConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return httpx.AsyncClient(
            headers=headers,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with self._client() as client:
                resp = await client.post(self._config.endpoint, json=payload)
        except httpx.TransportError as exc:
            raise CapabilityUnavailableError(
                f"{self.name} unreachable: {exc.__class__.__name__}: {exc}"
            ) from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise CapabilityUnavailableError(
                f"{self.name} returned HTTP {resp.status_code}"
            )
        if resp.status_code >= 400:
            raise CapabilityError(
                f"{self.name} rejected request: HTTP {resp.status_code} {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise CapabilityError(f"{self.name} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise CapabilityError(f"{self.name} returned {type(data).__name__}, expected object")
        return data


def _require(data: dict[str, Any], key: str, service: str) -> Any:
    if key not in data:
        raise CapabilityError(f"{service} response missing '{key}'")
    return data[key]


# ---------------------------------------------------------------------------
# Capability clients
# ---------------------------------------------------------------------------


class HTTPLanguageDetector(_JSONServiceClient, LanguageDetector):
    name = "language detection"

    async def detect_dominant_language(self, text: str) -> list[DetectedLanguage]:
        data = await self._post({"Text": text})
        languages = _require(data, "Languages", self.name)
        try:
            detected = [
                DetectedLanguage(code=item["LanguageCode"], score=float(item["Score"]))
                for item in languages
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise CapabilityError(f"{self.name} returned malformed language entry") from exc
        return sorted(detected, key=lambda d: d.score, reverse=True)


class HTTPTranslator(_JSONServiceClient, Translator):
    name = "translation"

    async def translate_text(
        self,
        text: str,
        source_language: str,
        target_language: str,
    ) -> Translation:
        data = await self._post({
            "Text": text,
            "SourceLanguageCode": source_language,
            "TargetLanguageCode": target_language,
        })
        return Translation(
            translated_text=_require(data, "TranslatedText", self.name),
            source_language=data.get("SourceLanguageCode", source_language),
            target_language=data.get("TargetLanguageCode", target_language),
        )


class HTTPSentimentAnalyzer(_JSONServiceClient, SentimentAnalyzer):
    name = "sentiment analysis"

    async def detect_sentiment(self, text: str, language_code: str) -> SentimentResult:
        data = await self._post({"Text": text, "LanguageCode": language_code})
        raw = _require(data, "Sentiment", self.name)
        try:
            sentiment = Sentiment(str(raw).upper())
        except ValueError as exc:
            raise CapabilityError(f"{self.name} returned unknown sentiment {raw!r}") from exc

        scores = data.get("SentimentScore") or {}
        return SentimentResult(
            sentiment=sentiment,
            scores=SentimentScores(
                positive=float(scores.get("Positive", 0.0)),
                negative=float(scores.get("Negative", 0.0)),
                neutral=float(scores.get("Neutral", 0.0)),
                mixed=float(scores.get("Mixed", 0.0)),
            ),
        )
