"""Country detection from article text via a fixed alias table."""

from __future__ import annotations

import logging

from covergen.classify.text import first_position
from covergen.models import CountryDetection

logger = logging.getLogger(__name__)

# (code, display name, aliases). Aliases are lower-case, matched as whole words.
COUNTRY_ALIASES: list[tuple[str, str, tuple[str, ...]]] = [
    ("CU", "Cuba", ("cuba", "cubano", "cubana", "cubanos", "la habana", "habana",
                    "santiago de cuba")),
    ("BE", "Belgium", ("bélgica", "belgium", "belgian", "bruselas", "brussels",
                       "brujas", "amberes")),
    ("GB", "United Kingdom", ("reino unido", "uk", "united kingdom", "inglaterra",
                              "england", "londres", "london", "británico", "british")),
    ("US", "United States", ("estados unidos", "eeuu", "usa", "united states",
                             "american", "estadounidense", "miami", "nueva york",
                             "washington")),
    ("RU", "Russia", ("rusia", "russia", "russian", "ruso", "moscú", "moscow",
                      "san petersburgo")),
    ("IN", "India", ("india", "indian", "indio", "nueva delhi", "mumbai", "bangalore")),
    ("CN", "China", ("china", "chinese", "chino", "beijing", "pekín", "shanghai",
                     "hong kong")),
    ("FR", "France", ("francia", "france", "french", "francés", "parís", "paris", "lyon")),
    ("DE", "Germany", ("alemania", "germany", "german", "alemán", "berlín", "berlin",
                       "munich")),
    ("ES", "Spain", ("españa", "spain", "spanish", "español", "madrid", "barcelona")),
    ("IT", "Italy", ("italia", "italy", "italian", "italiano", "roma", "rome", "milán")),
    ("JP", "Japan", ("japón", "japan", "japanese", "japonés", "tokio", "tokyo")),
    ("MX", "Mexico", ("méxico", "mexico", "mexican", "mexicano", "ciudad de méxico")),
    ("BR", "Brazil", ("brasil", "brazil", "brazilian", "brasileño", "são paulo",
                      "rio de janeiro")),
    ("AR", "Argentina", ("argentina", "argentino", "buenos aires")),
    ("CO", "Colombia", ("colombia", "colombiano", "bogotá")),
    ("VE", "Venezuela", ("venezuela", "venezolano", "caracas")),
    ("CL", "Chile", ("chile", "chileno", "santiago")),
    ("PE", "Peru", ("perú", "peru", "peruano", "lima")),
]

BODY_SCAN_CHARS = 1000

# Confidence by the section the earliest match falls in
TIER_CONFIDENCE = {"high": 0.95, "medium": 0.85, "low": 0.7}


def detect_country(
    title: str,
    summary: str = "",
    content: str = "",
    tags=(),
) -> CountryDetection:
    """Return the country whose alias appears earliest in the article.

    Position decides, not table order, so "Washington y La Habana" is US.
    When nothing matches the result is the ``global`` sentinel; no country
    is ever guessed.
    """
    title = (title or "").lower()
    summary = (summary or "").lower()
    body = (content or "")[:BODY_SCAN_CHARS].lower()
    full_text = " ".join([title, summary, body, " ".join(tags).lower()])

    best: tuple[int, str, str, str] | None = None
    for code, name, aliases in COUNTRY_ALIASES:
        for alias in aliases:
            pos = first_position(full_text, alias)
            if pos == -1:
                continue
            # Prefer the longer alias at an equal position ("santiago de cuba")
            if best is None or pos < best[0] or (pos == best[0] and len(alias) > len(best[3])):
                best = (pos, code, name, alias)

    if best is None:
        logger.debug("No country detected, using global context")
        return CountryDetection()

    pos, code, name, alias = best
    if pos < len(title):
        tier = "high"
    elif pos < len(title) + 1 + len(summary):
        tier = "medium"
    else:
        tier = "low"

    logger.debug("Country detected: %s (%s) via '%s' [%s]", name, code, alias, tier)
    return CountryDetection(
        code=code,
        name=name,
        confidence=TIER_CONFIDENCE[tier],
        tier=tier,
        economic_level="neutral",
        matched_alias=alias,
    )
