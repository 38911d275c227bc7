"""The sentiment analysis workflow.

    DetectDominantLanguage → FormatResult → TranslateNonPTLanguage
        ├─ Language == target ───────────────────────────────┐
        └─ otherwise → TranslateText → FormatTranslatedResult ┴→ DetectSentiment

Every request builder and projection below is a plain function over an
immutable document; the engine turns any ``DocumentPathError`` they
raise into a ``StepOutputError`` for the state that raised it.
FormatTranslatedResult also rejects a translation that did not come
back in the target language.
"""

from __future__ import annotations

from functools import partial
from typing import Any

from sentiflow.capabilities import (
    DETECT_DOMINANT_LANGUAGE,
    DETECT_SENTIMENT,
    TRANSLATE_TEXT,
)
from sentiflow.workflows.document import Document, select_str
from sentiflow.workflows.errors import StepOutputError
from sentiflow.workflows.schema import (
    ChoiceRule,
    ChoiceState,
    Not,
    PassState,
    StringEquals,
    TaskState,
    WorkflowDef,
)

# State names
DETECT_LANGUAGE_STATE = "DetectDominantLanguage"
FORMAT_RESULT_STATE = "FormatResult"
TRANSLATION_CHOICE_STATE = "TranslateNonPTLanguage"
TRANSLATE_STATE = "TranslateText"
FORMAT_TRANSLATED_STATE = "FormatTranslatedResult"
DETECT_SENTIMENT_STATE = "DetectSentiment"

DEFAULT_TARGET_LANGUAGE = "pt"


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------


def language_request(document: Document) -> dict[str, Any]:
    return {"Text": select_str(document, "txt")}


def translate_request(document: Document, target_language: str) -> dict[str, Any]:
    return {
        "Text": select_str(document, "Text"),
        "SourceLanguageCode": select_str(document, "Language"),
        "TargetLanguageCode": target_language,
    }


def sentiment_request(document: Document) -> dict[str, Any]:
    return {
        "Text": select_str(document, "Text"),
        "LanguageCode": select_str(document, "Language"),
    }


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


def format_result(document: Document) -> dict[str, Any]:
    """Keep the input text and the top-scoring detected language."""
    return {
        "Text": select_str(document, "txt"),
        "Language": select_str(document, "result", "Languages", 0, "LanguageCode"),
    }


def format_translated_result(document: Document, target_language: str) -> dict[str, Any]:
    """Keep the translated text; the translation must be in ``target_language``."""
    language = select_str(document, "result", "TargetLanguageCode")
    if language != target_language:
        raise StepOutputError(
            FORMAT_TRANSLATED_STATE,
            f"translation returned language '{language}', expected '{target_language}'",
        )
    return {
        "Text": select_str(document, "result", "TranslatedText"),
        "Language": language,
    }


# ---------------------------------------------------------------------------
# Definition
# ---------------------------------------------------------------------------


def build_sentiment_workflow(
    name: str = "SentimentAnalisys",
    target_language: str = DEFAULT_TARGET_LANGUAGE,
) -> WorkflowDef:
    """Build the language detection → translation → sentiment graph."""
    is_target = StringEquals("Language", target_language)

    states = [
        TaskState(
            name=DETECT_LANGUAGE_STATE,
            capability=DETECT_DOMINANT_LANGUAGE,
            build_request=language_request,
            result_key="result",
            next=FORMAT_RESULT_STATE,
            description="Identify the dominant language of the input text",
        ),
        PassState(
            name=FORMAT_RESULT_STATE,
            project=format_result,
            next=TRANSLATION_CHOICE_STATE,
        ),
        ChoiceState(
            name=TRANSLATION_CHOICE_STATE,
            rules=(
                ChoiceRule(predicate=is_target, next=DETECT_SENTIMENT_STATE),
                ChoiceRule(predicate=Not(is_target), next=TRANSLATE_STATE),
            ),
            description=f"Translate anything that is not '{target_language}'",
        ),
        TaskState(
            name=TRANSLATE_STATE,
            capability=TRANSLATE_TEXT,
            build_request=partial(translate_request, target_language=target_language),
            result_key="result",
            next=FORMAT_TRANSLATED_STATE,
        ),
        PassState(
            name=FORMAT_TRANSLATED_STATE,
            project=partial(format_translated_result, target_language=target_language),
            next=DETECT_SENTIMENT_STATE,
        ),
        TaskState(
            name=DETECT_SENTIMENT_STATE,
            capability=DETECT_SENTIMENT,
            build_request=sentiment_request,
            result_key=None,
            next=None,
        ),
    ]

    return WorkflowDef(
        name=name,
        start_at=DETECT_LANGUAGE_STATE,
        states={s.name: s for s in states},
        description="Detect language, translate when needed, detect sentiment",
        metadata={"target_language": target_language},
    )
