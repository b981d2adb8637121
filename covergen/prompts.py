"""Prompt templates and the escalation ladder builder."""

from __future__ import annotations

import logging

from covergen.classify.context import MINIMAL_NEGATIVE, get_context_rules
from covergen.models import (
    ClassificationResult,
    ContextSelection,
    CountryDetection,
    EntityDetection,
    GenerationRequest,
    PromptAttempt,
    PromptPlan,
)

logger = logging.getLogger(__name__)

CONTEXTUAL_MAX_CHARS = 1000
RAW_MAX_CHARS = 4000

RAW_DEFAULT_PROMPT = "Imagen periodística editorial, formato horizontal."

EDITORIAL_STYLE = {
    "news_photojournalism": (
        "Fotografía periodística editorial, realista y documental, luz natural"
    ),
    "editorial_illustration": (
        "Ilustración editorial a todo color, estilo cómic / novela gráfica moderna"
    ),
}

NEUTRAL_PROMPT = (
    "Ilustración editorial a todo color, estilo cómic / novela gráfica moderna. "
    "Escena periodística con personajes y ambiente expresivos, contornos marcados "
    "y colores vivos."
)

GENERIC_FALLBACK_PROMPT = "escena periodística. Imagen periodística, formato horizontal 16:9."

QA_RULES = "Composición limpia, encuadre horizontal, sin texto superpuesto"

FORMAT_LINE = "Formato horizontal 16:9"

SUBTYPE_NOTES = {
    "press_conference": "Rueda de prensa con podio y micrófonos genéricos",
    "political_protest": "Manifestación ciudadana en la calle",
    "citizen_government_interaction": "Funcionarios conversando con vecinos en la comunidad",
    "courtroom": "Ambiente judicial formal",
    "economic_crisis": "Vida económica cotidiana con escasez visible",
    "natural_disaster": "Consecuencias del fenómeno natural en la ciudad",
    "military_tension": "Tensión militar sin violencia explícita",
}

EVENT_NOTES = {
    "storm": "Efectos de {name}: lluvia intensa y viento",
    "earthquake": "Daños tras un sismo",
    "fire": "Incendio activo con bomberos trabajando",
    "blackout": "Calles a oscuras durante un apagón",
    "flood": "Calles inundadas",
    "protest": "Multitud manifestándose en la calle",
}

PERSON_NOTE = (
    "Figura pública ({name}) representada de forma genérica, sin parecido facial "
    "exacto, de espaldas o a media distancia"
)

COUNTRY_NOTE = "Ambientación reconocible de {name}, sin banderas ni rótulos"


def _join(parts: list[str], limit: int) -> str:
    text = ". ".join(p.strip().rstrip(".") for p in parts if p and p.strip()) + "."
    if len(text) > limit:
        text = text[: limit - 1].rstrip() + "…"
    return text


def _negative(context_negative: str, settings: dict) -> str:
    if settings["disable_auto_negative"]:
        return ""
    parts = [context_negative, settings.get("negative_default") or ""]
    return ", ".join(p for p in parts if p)


def is_raw_request(request: GenerationRequest, settings: dict) -> bool:
    """A per-request mode wins over the configured one; disable_auto_context forces raw."""
    if request.mode is None:
        return settings["is_raw_mode"]
    return request.mode == "raw" or settings["disable_auto_context"]


def build_raw_attempt(request: GenerationRequest, settings: dict) -> PromptAttempt:
    text = (request.custom_prompt or "").strip()[:RAW_MAX_CHARS]
    return PromptAttempt(
        prompt=text or RAW_DEFAULT_PROMPT,
        negative="" if settings["disable_auto_negative"] else MINIMAL_NEGATIVE,
        level="custom",
    )


def build_contextual_prompt(
    request: GenerationRequest,
    settings: dict,
    mode: str,
    classification: ClassificationResult,
    country: CountryDetection,
    entity: EntityDetection,
    context: ContextSelection,
) -> str:
    """First-rung prompt: scene, style and subject notes for this article."""
    rules = get_context_rules(context.context_id)
    if mode == "minimal":
        return _join([rules["scene"], rules["style"]], CONTEXTUAL_MAX_CHARS)

    parts = []
    if request.custom_prompt:
        parts.append(request.custom_prompt.strip())
    if not settings["disable_editorial_mode"]:
        style_key = settings.get("default_style") or "news_photojournalism"
        parts.append(EDITORIAL_STYLE.get(style_key, EDITORIAL_STYLE["news_photojournalism"]))
    parts.append(f"Escena: {rules['scene']}")
    parts.append(SUBTYPE_NOTES.get(classification.scene_subtype, ""))
    if entity.event_type:
        parts.append(EVENT_NOTES[entity.event_type].format(name=entity.event_name or ""))
    elif entity.is_person and entity.primary_person:
        parts.append(PERSON_NOTE.format(name=entity.primary_person))
    if country.code:
        parts.append(COUNTRY_NOTE.format(name=country.name))
    parts.append(rules["style"])
    if not settings["disable_qa_rules"]:
        parts.append(QA_RULES)
    parts.append(FORMAT_LINE)
    return _join(parts, CONTEXTUAL_MAX_CHARS)


def build_prompt_plan(
    request: GenerationRequest,
    settings: dict,
    classification: ClassificationResult | None = None,
    country: CountryDetection | None = None,
    entity: EntityDetection | None = None,
    context: ContextSelection | None = None,
) -> PromptPlan:
    """Build the ordered prompt ladder for a request.

    raw mode yields a single pass-through attempt. Otherwise the plan is
    contextual, then neutral, then generic; the last two carry nothing
    from the article so they can get past a safety block.
    """
    if is_raw_request(request, settings):
        return PromptPlan(attempts=[build_raw_attempt(request, settings)], mode="raw")

    mode = request.mode or settings["prompt_mode"]
    if classification is None or context is None:
        raise ValueError("Contextual prompt modes need a classification and a context")
    country = country or CountryDetection()
    entity = entity or EntityDetection()
    rules = get_context_rules(context.context_id)

    contextual = PromptAttempt(
        prompt=build_contextual_prompt(
            request, settings, mode, classification, country, entity, context,
        ),
        negative=_negative(rules["negative"], settings),
        level="contextual",
    )
    neutral = PromptAttempt(
        prompt=NEUTRAL_PROMPT,
        negative=_negative(MINIMAL_NEGATIVE, settings),
        level="neutral",
    )
    generic = PromptAttempt(
        prompt=GENERIC_FALLBACK_PROMPT,
        negative="" if settings["disable_auto_negative"] else MINIMAL_NEGATIVE,
        level="generic-fallback",
    )
    logger.debug(
        "Prompt plan for %s: theme=%s context=%s",
        request.request_id, classification.theme, context.context_id,
    )
    return PromptPlan(
        attempts=[contextual, neutral, generic],
        mode=mode,
        theme=classification.theme,
        context_id=context.context_id,
        country_code=country.code,
        person=entity.primary_person,
    )
