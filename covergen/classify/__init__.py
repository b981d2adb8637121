"""Article analysis: theme, country, entity and visual context."""

from __future__ import annotations

from dataclasses import dataclass

from covergen.classify.context import select_context
from covergen.classify.country import detect_country
from covergen.classify.entity import detect_entities
from covergen.classify.theme import THEMES, classify_theme
from covergen.models import (
    ClassificationResult,
    ContextSelection,
    CountryDetection,
    EntityDetection,
    GenerationRequest,
)


@dataclass(frozen=True)
class Analysis:
    classification: ClassificationResult
    country: CountryDetection
    entity: EntityDetection
    context: ContextSelection


def analyze_request(request: GenerationRequest, settings: dict) -> Analysis:
    """Run all detectors over a request.

    The detectors share no state; ``force_theme`` bypasses the classifier.
    """
    if request.force_theme:
        if request.force_theme not in THEMES:
            raise ValueError(f"Unknown theme: {request.force_theme}")
        classification = ClassificationResult(
            theme=request.force_theme,
            confidence=1.0,
            reasons=("forced",),
            is_disaster=request.force_theme == "disaster",
        )
    else:
        classification = classify_theme(
            request.title,
            request.summary,
            request.content,
            request.tags,
            request.category,
            keywords_threshold=settings["keywords_threshold"],
            disaster_threshold=settings["disaster_threshold"],
        )

    country = detect_country(request.title, request.summary, request.content, request.tags)
    entity = detect_entities(
        request.title,
        request.summary,
        request.content,
        request.tags,
        enabled=not settings["disable_person_detector"],
    )
    context = select_context(
        request.title, request.summary, request.tags, entity, classification,
    )
    return Analysis(classification, country, entity, context)
