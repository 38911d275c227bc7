"""Stub capability clients — deterministic responses for testing.

Keyword-matched language detection, a word-by-word phrase table for
translation and a tiny lexicon for sentiment.  Good enough to drive the
workflow end to end without any network service; not intended for real
text analysis.
"""

from __future__ import annotations

import logging
import re

from sentiflow.capabilities.base import (
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

_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)


def _words(text: str) -> list[str]:
    return [w.lower() for w in _WORD_RE.findall(text)]


# ---------------------------------------------------------------------------
# Canned data
# ---------------------------------------------------------------------------

_LANGUAGE_MARKERS: dict[str, set[str]] = {
    "pt": {
        "eu", "amo", "isso", "não", "nao", "é", "muito", "você", "voce", "obrigado",
        "odeio", "bom", "ruim", "gosto", "que", "uma", "um", "para", "com", "está",
    },
    "en": {
        "i", "love", "this", "the", "is", "not", "very", "you", "thanks", "hate",
        "good", "bad", "like", "it", "and", "a", "an", "to", "with", "are",
    },
    "es": {
        "yo", "amo", "esto", "el", "la", "es", "muy", "usted", "gracias", "odio",
        "bueno", "malo", "me", "gusta", "y", "una", "para", "con", "está", "no",
    },
    "fr": {
        "je", "aime", "ceci", "le", "la", "est", "très", "vous", "merci", "déteste",
        "bon", "mauvais", "et", "une", "pour", "avec", "pas", "ce", "c", "j",
    },
}

_PHRASE_TABLE: dict[tuple[str, str], dict[str, str]] = {
    ("en", "pt"): {
        "i": "eu", "love": "amo", "this": "isso", "hate": "odeio", "is": "é",
        "very": "muito", "good": "bom", "bad": "ruim", "great": "ótimo",
        "terrible": "horrível", "happy": "feliz", "sad": "triste", "not": "não",
        "it": "isso", "like": "gosto", "thanks": "obrigado",
    },
    ("es", "pt"): {
        "yo": "eu", "amo": "amo", "esto": "isso", "odio": "odeio", "es": "é",
        "muy": "muito", "bueno": "bom", "malo": "ruim", "feliz": "feliz",
        "triste": "triste", "gracias": "obrigado",
    },
    ("fr", "pt"): {
        "je": "eu", "aime": "amo", "ceci": "isso", "déteste": "odeio", "est": "é",
        "très": "muito", "bon": "bom", "mauvais": "ruim", "merci": "obrigado",
    },
}

_POSITIVE = {
    "amo", "adoro", "gosto", "bom", "boa", "ótimo", "otimo", "excelente", "feliz",
    "obrigado", "love", "good", "great", "happy", "like",
}
_NEGATIVE = {
    "odeio", "ruim", "péssimo", "pessimo", "horrível", "horrivel", "triste",
    "hate", "bad", "terrible", "sad",
}


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class StubLanguageDetector(LanguageDetector):
    """Scores languages by the share of marker words found in the text.

    Text with no recognizable words yields an empty candidate list.
    """

    def __init__(self, fallback_language: str = "en") -> None:
        self._fallback = fallback_language
        self.call_count = 0

    async def detect_dominant_language(self, text: str) -> list[DetectedLanguage]:
        self.call_count += 1
        words = _words(text)
        if not words:
            return []

        hits = {
            code: sum(1 for w in words if w in markers)
            for code, markers in _LANGUAGE_MARKERS.items()
        }
        total = sum(hits.values())
        if total == 0:
            return [DetectedLanguage(code=self._fallback, score=0.5)]

        detected = [
            DetectedLanguage(code=code, score=round(count / total, 4))
            for code, count in hits.items()
            if count > 0
        ]
        return sorted(detected, key=lambda d: (-d.score, d.code))


class StubTranslator(Translator):
    """Word-by-word translation; unknown words pass through unchanged."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def translate_text(
        self,
        text: str,
        source_language: str,
        target_language: str,
    ) -> Translation:
        self.calls.append((text, source_language, target_language))
        table = _PHRASE_TABLE.get((source_language, target_language), {})

        def replace(match: re.Match) -> str:
            word = match.group(0)
            translated = table.get(word.lower())
            if translated is None:
                return word
            return translated.capitalize() if word[0].isupper() else translated

        return Translation(
            translated_text=_WORD_RE.sub(replace, text),
            source_language=source_language,
            target_language=target_language,
        )


class StubSentimentAnalyzer(SentimentAnalyzer):
    """Lexicon count: positive vs negative hits decide the label."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def detect_sentiment(self, text: str, language_code: str) -> SentimentResult:
        self.calls.append((text, language_code))
        words = _words(text)
        pos = sum(1 for w in words if w in _POSITIVE)
        neg = sum(1 for w in words if w in _NEGATIVE)

        if pos and neg:
            label = Sentiment.MIXED
        elif pos:
            label = Sentiment.POSITIVE
        elif neg:
            label = Sentiment.NEGATIVE
        else:
            label = Sentiment.NEUTRAL

        total = pos + neg
        if total == 0:
            scores = SentimentScores(neutral=1.0)
        else:
            mixed = min(pos, neg) / total
            rest = 1.0 - mixed
            scores = SentimentScores(
                positive=round(rest * pos / total, 4),
                negative=round(rest * neg / total, 4),
                neutral=0.0,
                mixed=round(mixed, 4),
            )
        return SentimentResult(sentiment=label, scores=scores)
