"""Rule-based visual theme classification.

The classifier is an ordered cascade that returns on the first match:

1. Disaster gate (multi-signal, see ``_disaster_gate``)
2. Topical keyword cascades: justice, politics, economy, technology,
   sports, culture, society
3. Category-string fallback
4. Generic default

A single scattered disaster word ("incendio" in the fifth paragraph of a
court story) must never produce disaster imagery, so the gate needs
either an explicit category or keywords in two separate places.
"""

from __future__ import annotations

import logging
import re
from collections import Counter

from covergen.classify.text import find_keywords
from covergen.models import ClassificationResult

logger = logging.getLogger(__name__)

THEME_KEYWORDS: dict[str, list[str]] = {
    "justice": [
        "espionaje", "delito", "fiscalía", "juicio", "tribunal", "sentencia",
        "acusación", "corrupción", "juzgado", "condena", "investigación penal",
        "detención", "arresto", "cargo criminal", "audiencia judicial",
    ],
    "politics": [
        "ministro", "gobierno", "parlamento", "política", "decreto", "partido",
        "presidente", "congreso", "senado", "diputado", "elecciones", "reforma",
        "gabinete", "legislación", "diplomacia",
    ],
    "economy": [
        "inflación", "precios", "salario", "pib", "importación", "exportación",
        "mercado", "divisa", "economía", "comercio", "finanzas", "inversión",
        "bolsa", "deuda", "déficit", "crecimiento económico",
    ],
    "technology": [
        "ia", "software", "ciberseguridad", "datos", "startup", "app", "satélite",
        "chip", "tecnología", "innovación", "inteligencia artificial",
        "blockchain", "algoritmo", "programación", "digital",
    ],
    "sports": [
        "equipo", "jugador", "liga", "campeonato", "partido", "estadio",
        "entrenador", "torneo", "copa", "atleta", "deporte", "pelota", "fútbol",
        "béisbol",
    ],
    "culture": [
        "arte", "música", "cine", "teatro", "exposición", "festival", "concierto",
        "película", "artista", "cultura", "museo", "literatura", "danza",
    ],
    "society": [
        "comunidad", "sociedad", "civil", "ciudadano", "vecinos", "barrio",
        "población", "social", "bienestar", "servicio público",
    ],
}

TOPIC_ORDER = ["justice", "politics", "economy", "technology", "sports", "culture", "society"]

DISASTER_KEYWORDS = [
    "huracán", "ciclón", "tormenta tropical", "terremoto", "sismo",
    "incendio forestal", "incendio", "inundación", "inundado", "derrumbe",
    "desastre natural", "desastre", "devastación", "catástrofe",
]

DISASTER_CATEGORIES = ["desastres", "sucesos/desastres", "clima extremo", "emergencias"]

CITIZEN_GOV_DISASTER_KEYWORDS = [
    "damnificados", "afectados", "visita a zona afectada",
    "encuentro con damnificados", "reunión con pobladores",
]

PROTEST_KEYWORDS = [
    "protesta", "manifestación", "marcha", "concentración", "activista", "cacerolazo",
]

CITIZEN_GOV_KEYWORDS = [
    "ciudadanos", "damnificados", "vecinos", "afectados", "quejas", "reclamaciones",
    "reunión pública", "intercambio con la población", "visita a barrio",
    "visita oficial a comunidad", "encuentro con damnificados",
    "reunión con pobladores", "visita a zona afectada",
]

CONFERENCE_KEYWORDS = [
    "rueda de prensa", "conferencia de prensa", "periodistas",
    "medios de comunicación", "declaraciones a la prensa", "micrófonos",
]

# Press-event phrases also count as politics evidence
POLITICS_PRESS_SIGNALS = [
    "rueda de prensa", "conferencia de prensa", "declaraciones a la prensa",
]

MILITARY_KEYWORDS = [
    "guerra", "conflicto armado", "ataque", "bombardeo", "misil", "misiles",
    "drones militares", "invasión", "tropas", "ejército en combate",
    "fuerzas armadas", "otan", "frente de guerra", "trincheras",
    "ofensiva militar", "combate armado", "ataque aéreo", "bombardeo aéreo",
    "operación militar",
]
MILITARY_MIN_MATCHES = 2

CATEGORY_FALLBACKS: list[tuple[tuple[str, ...], str]] = [
    (("justicia", "judicial"), "justice"),
    (("econom", "mercado"), "economy"),
    (("polít", "gobierno"), "politics"),
    (("tecnolog", "digital"), "technology"),
    (("deport",), "sports"),
    (("cultur", "arte"), "culture"),
    (("sociedad", "social"), "society"),
]

THEMES = ("disaster", "person-press", "generic", *TOPIC_ORDER)

CONTENT_SCAN_CHARS = 1500
TOP_KEYWORDS = 12

_WORD = re.compile(r"[a-záéíóúñü]+")


def _distinct(hits: list[str]) -> list[str]:
    """Drop hits contained in a longer hit ("incendio" inside "incendio forestal")."""
    return [h for h in hits if not any(h != o and h in o for o in hits)]


def _disaster_gate(
    title: str, body: str, tags: list[str], category: str,
) -> tuple[bool, str, list[str]]:
    """Decide whether the article is a disaster story.

    Requires one of: disaster category, >=2 title keywords plus >=1 body
    keyword, or a tag keyword plus >=1 title keyword.
    """
    if any(c in category for c in DISASTER_CATEGORIES):
        return True, f"category:{category}", []

    title_hits = _distinct(find_keywords(title, DISASTER_KEYWORDS))
    body_hits = _distinct(find_keywords(body, DISASTER_KEYWORDS))
    if len(title_hits) >= 2 and body_hits:
        return True, "title_and_body_keywords", title_hits + body_hits

    tag_hits = [kw for kw in DISASTER_KEYWORDS if any(kw in t for t in tags)]
    if tag_hits and title_hits:
        return True, "tag_and_title_keywords", tag_hits + title_hits

    return False, "", []


def _politics_subtype(text: str) -> str:
    if find_keywords(text, PROTEST_KEYWORDS):
        return "political_protest"
    # Citizen meetings win over press events when both appear
    if find_keywords(text, CITIZEN_GOV_KEYWORDS):
        return "citizen_government_interaction"
    if find_keywords(text, CONFERENCE_KEYWORDS):
        return "press_conference"
    return "generic_scene"


def has_military_tension(text: str) -> bool:
    return len(find_keywords(text, MILITARY_KEYWORDS)) >= MILITARY_MIN_MATCHES


def extract_top_keywords(text: str, limit: int = TOP_KEYWORDS) -> list[str]:
    """Most frequent words longer than three letters."""
    counts = Counter(w for w in _WORD.findall(text.lower()) if len(w) > 3)
    return [w for w, _ in counts.most_common(limit)]


def _result(theme, confidence, reasons, keywords=(), subtype="generic_scene",
            is_disaster=False, military=False) -> ClassificationResult:
    if military and not is_disaster:
        subtype = "military_tension"
    return ClassificationResult(
        theme=theme,
        confidence=round(confidence, 4),
        reasons=tuple(reasons),
        is_disaster=is_disaster,
        keywords=tuple(keywords),
        scene_subtype=subtype,
        military_tension=military,
    )


def classify_theme(
    title: str,
    summary: str = "",
    content: str = "",
    tags=(),
    category: str = "",
    keywords_threshold: int = 2,
    disaster_threshold: float = 0.75,
) -> ClassificationResult:
    """Map article text to a visual theme with confidence and reasons."""
    title_l = (title or "").lower()
    body = f"{summary or ''} {(content or '')[:CONTENT_SCAN_CHARS]}".lower()
    tags_l = [t.lower() for t in tags]
    category_l = (category or "").lower().strip()
    full_text = f"{title_l} {body}"
    military = has_military_tension(full_text)

    # 1. Disaster gate
    is_disaster, why, hits = _disaster_gate(title_l, body, tags_l, category_l)
    if is_disaster:
        confidence = 0.9
        if confidence >= disaster_threshold:
            subtype = (
                "citizen_government_interaction"
                if find_keywords(full_text, CITIZEN_GOV_DISASTER_KEYWORDS)
                else "natural_disaster"
            )
            return _result(
                "disaster", confidence, ["disaster_gate", why], hits,
                subtype=subtype, is_disaster=True,
            )
        logger.debug("Disaster gate passed below threshold %.2f", disaster_threshold)

    # 2. Topical cascades
    for theme in TOPIC_ORDER:
        matched = find_keywords(full_text, THEME_KEYWORDS[theme])
        if theme == "politics":
            matched += [
                kw for kw in find_keywords(full_text, POLITICS_PRESS_SIGNALS)
                if kw not in matched
            ]

        if theme == "justice":
            if not matched:
                continue
            confidence = min(0.95, 0.6 + len(matched) * 0.1)
            return _result(
                theme, confidence, [f"keywords:{len(matched)}"], matched,
                subtype="courtroom", military=military,
            )

        if len(matched) < keywords_threshold:
            continue
        confidence = min(0.95, 0.6 + len(matched) * 0.08)
        if theme == "politics":
            subtype = _politics_subtype(full_text)
        elif theme == "economy":
            subtype = "economic_crisis"
        else:
            subtype = "generic_scene"
        return _result(
            theme, confidence, [f"keywords:{len(matched)}"], matched,
            subtype=subtype, military=military,
        )

    # 3. Category fallback
    if category_l:
        for needles, theme in CATEGORY_FALLBACKS:
            if any(n in category_l for n in needles):
                return _result(
                    theme, 0.5, [f"category_fallback:{category_l}"], military=military,
                )

    # 4. Generic
    return _result(
        "generic", 0.3, ["no_strong_signals"],
        extract_top_keywords(full_text), military=military,
    )
