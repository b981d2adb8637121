"""Lightweight public-figure and event detection.

Two stages, in order:

1. Natural-phenomenon / event patterns (storm, earthquake, fire, blackout,
   flood, protest). A hit returns immediately as an event and person
   detection is skipped, so a detection is never both.
2. Capitalised multi-word name candidates, scored by mentions, tag
   membership and title presence. Generic official titles
   ("Ministro de ...") never count as a person.
"""

from __future__ import annotations

import logging
import re

from covergen.classify.text import normalize
from covergen.models import EntityDetection

logger = logging.getLogger(__name__)

_UPPER = "A-ZÁÉÍÓÚÑÜ"
_LOWER = "a-záéíóúñü"

EVENT_PATTERNS: dict[str, re.Pattern] = {
    "storm": re.compile(
        rf"(?<!\w)(?i:huracán|tormenta tropical|tormenta|depresión\s+tropical|ciclón|tifón)"
        rf"\s+([{_UPPER}][{_LOWER}]+)\b"
    ),
    "earthquake": re.compile(
        r"(?<!\w)(sismo|terremoto|temblor)\s+(?:de\s+)?(\d+(?:[.,]\d+)?|magnitud)",
        re.IGNORECASE,
    ),
    "fire": re.compile(
        rf"(?<!\w)(incendio|fuego)\s+(?:en|de)\s+([{_LOWER}{_UPPER}][{_LOWER}{_UPPER} ]+)",
        re.IGNORECASE,
    ),
    "blackout": re.compile(
        r"(?<!\w)(apagón|apagones|corte\s+(?:de\s+)?(?:luz|energía|electricidad)"
        r"|fallo\s+eléctrico)",
        re.IGNORECASE,
    ),
    "flood": re.compile(r"(?<!\w)(inundación|inundaciones|desbordamiento)", re.IGNORECASE),
    "protest": re.compile(
        r"(?<!\w)(protesta|manifestación|cacerolazo|concentración|marcha)"
        r"\s+(?:en|de|por|contra)\b",
        re.IGNORECASE,
    ),
}

GENERIC_TITLES = [
    re.compile(
        r"\b(ministro|ministra|canciller|embajador|embajadora|secretario|secretaria)"
        r"\s+(de|del)\b"
    ),
    re.compile(r"\balcalde\b"),
    re.compile(r"\bfiscal\b"),
    re.compile(r"\bportavoz\b"),
    re.compile(r"\bfuncionario\b"),
]

STOPWORDS = {
    "el", "la", "los", "las", "un", "una", "unos", "unas",
    "de", "del", "al", "para", "por", "con", "sin", "sobre",
    "estado", "estados", "unidos", "casa", "blanca", "congreso",
    "washington", "miami", "cuba", "habana", "eeuu", "onu",
}

_NAME_PATTERN = re.compile(
    rf"\b[{_UPPER}][{_LOWER}]+"
    rf"(?:\s+(?:(?:de|del|la|las|los|y|e|von|van|di|da)\s+)?[{_UPPER}][{_LOWER}]+)+"
)

MENTION_SCAN_CHARS = 2000
MIN_CANDIDATE_LENGTH = 5


def detect_event(text: str) -> tuple[str, str] | None:
    """Return ``(event_type, event_name)`` for the first matching pattern."""
    for event_type, pattern in EVENT_PATTERNS.items():
        match = pattern.search(text)
        if not match:
            continue
        if event_type == "storm":
            name = f"{match.group(0).split()[0].capitalize()} {match.group(1)}"
        else:
            name = match.group(0).strip()
        return event_type, name
    return None


def extract_name_candidates(text: str) -> list[str]:
    """Capitalised multi-word sequences that could be a person's name."""
    seen: set[str] = set()
    candidates = []
    for match in _NAME_PATTERN.finditer(text):
        candidate = match.group(0).strip()
        if len(candidate) < MIN_CANDIDATE_LENGTH:
            continue
        words = normalize(candidate).split()
        if all(w in STOPWORDS for w in words):
            continue
        key = normalize(candidate)
        if key in seen:
            continue
        seen.add(key)
        candidates.append(candidate)
    return candidates


def is_generic_title(candidate: str) -> bool:
    text = candidate.lower()
    return any(pattern.search(text) for pattern in GENERIC_TITLES)


def count_mentions(name: str, text: str) -> int:
    words = normalize(name).split()
    pattern = re.compile(r"\b" + r"\s+".join(re.escape(w) for w in words) + r"\b")
    return len(pattern.findall(normalize(text)))


def in_tags(name: str, tags) -> bool:
    normalized = normalize(name).strip()
    for tag in tags:
        tag_norm = normalize(tag).strip()
        if tag_norm and (normalized in tag_norm or tag_norm in normalized):
            return True
    return False


def detect_entities(
    title: str,
    summary: str = "",
    content: str = "",
    tags=(),
    enabled: bool = True,
) -> EntityDetection:
    """Detect the article's main event or public figure.

    A person is accepted only with >= 2 mentions or a tag match;
    otherwise an empty detection is returned rather than a weak guess.
    """
    primary_text = f"{title or ''} {summary or ''}".strip()
    full_text = f"{primary_text} {content or ''}"[:MENTION_SCAN_CHARS]
    if not primary_text:
        return EntityDetection()

    event = detect_event(full_text)
    if event:
        event_type, event_name = event
        logger.debug("Event detected: %s (%s)", event_type, event_name)
        return EntityDetection(event_type=event_type, event_name=event_name)

    if not enabled:
        return EntityDetection()

    title_norm = normalize(title or "")
    best: tuple[int, str, int, bool] | None = None
    for candidate in extract_name_candidates(full_text):
        if is_generic_title(candidate):
            continue
        mentions = count_mentions(candidate, full_text)
        tagged = in_tags(candidate, tags)
        score = mentions * 50
        if tagged:
            score += 30
        if normalize(candidate) in title_norm:
            score += 20
        if best is None or score > best[0]:
            best = (score, candidate, mentions, tagged)

    if best is None:
        return EntityDetection()

    score, name, mentions, tagged = best
    if mentions < 2 and not tagged:
        logger.debug("Candidate '%s' below threshold (%d mentions)", name, mentions)
        return EntityDetection()

    logger.debug("Person detected: %s (score %d)", name, score)
    return EntityDetection(
        is_person=True,
        primary_person=name,
        mentions=mentions,
        in_tags=tagged,
        confidence=min(100, score) / 100,
    )
