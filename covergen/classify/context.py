"""Static visual-context rule table and context selection."""

from __future__ import annotations

import logging

from covergen.classify.text import find_keywords
from covergen.models import ClassificationResult, ContextSelection, EntityDetection

logger = logging.getLogger(__name__)

# Text, logos and watermarks only. Broader negatives suppressed legitimate scenes.
MINIMAL_NEGATIVE = "text, letters, logos, watermarks, readable signage"

DEFAULT_CONTEXT = "generic-city"

CONTEXT_TAXONOMY: dict[str, dict] = {
    "storm-provisions": {
        "keywords": ["provisiones", "raciones", "abastecimiento", "libreta", "tiendas",
                     "azúcar", "arroz", "defensa civil", "suministros", "alimentos",
                     "distribución"],
        "scene": "warehouse-like distribution center with generic supply boxes and "
                 "packages being organized, civil defense workers in simple vests "
                 "handling provisions, indoor storage facility",
        "style": "Photojournalism, documentary realism, 3:2 aspect ratio",
    },
    "storm-impact": {
        "keywords": ["lluvia", "viento", "calles inundadas", "techos", "protección civil",
                     "evacuación", "refugio", "daños", "inundación", "inundaciones",
                     "huracán", "ciclón", "tormenta", "deslizamiento", "rescate",
                     "emergencia"],
        "scene": "rain-soaked streets with pooled water, wind-blown debris, damaged "
                 "roofs or infrastructure, civil protection personnel in rain gear, "
                 "overcast stormy atmosphere",
        "style": "Photojournalism, documentary realism, dramatic weather lighting, 3:2",
    },
    "protest": {
        "keywords": ["protesta", "manifestación", "cacerolazo", "pancartas",
                     "concentración", "marcha", "activistas", "detención", "represión"],
        "scene": "street protest scene with crowd of people holding blank placards and "
                 "banners (no readable text), urban setting, diverse group of "
                 "demonstrators",
        "style": "Photojournalism, street photography, natural lighting, 3:2",
    },
    "courtroom": {
        "keywords": ["juicio", "tribunal", "fiscalía", "audiencia", "corte",
                     "sala judicial", "sentencia"],
        "scene": "courtroom interior with wooden benches, judge bench, neutral "
                 "government seal (no text), formal legal setting",
        "style": "Documentary photography, formal composition, neutral lighting, 3:2",
    },
    "hospital": {
        "keywords": ["hospital", "uci", "ambulancia", "vacunación", "médico",
                     "enfermera", "clínica", "salud"],
        "scene": "medical facility with generic equipment, healthcare workers in scrubs "
                 "or white coats, clinical setting with medical supplies (no brand names)",
        "style": "Documentary photography, clinical lighting, professional, 3:2",
    },
    "school": {
        "keywords": ["escuela", "aula", "estudiantes", "maestro", "educación",
                     "universidad", "colegio"],
        "scene": "classroom setting with desks, students (backs or distant), teacher at "
                 "blackboard, educational materials without readable text",
        "style": "Documentary photography, natural classroom lighting, 3:2",
    },
    "government-press": {
        "keywords": ["conferencia de prensa", "anuncio gubernamental", "portavoz",
                     "declaraciones oficiales", "rueda de prensa", "reunión oficial",
                     "reunión", "encuentro", "cumbre"],
        "scene": "official press conference setting with podium, neutral backdrop with "
                 "generic government seal (no text), microphones without visible logos",
        "style": "Editorial photography, formal composition, neutral lighting, 3:2",
    },
    "economy-market": {
        "keywords": ["inflación", "mercado", "colas", "billetes", "precios", "economía",
                     "comercio", "tienda"],
        "scene": "market or store scene with generic products on shelves (no brands), "
                 "cash transactions with generic bills, economic activity",
        "style": "Documentary photography, natural market lighting, candid, 3:2",
    },
    "border-migration": {
        "keywords": ["frontera", "migración", "guardia fronteriza", "aduana",
                     "migrantes", "cruce"],
        "scene": "border checkpoint or barrier, border patrol vehicles (no text), people "
                 "waiting in line, neutral border infrastructure",
        "style": "Documentary photography, outdoor natural lighting, wide angle, 3:2",
    },
    "police-military": {
        "keywords": ["operativo policial", "patrulla", "retén", "policía", "militar",
                     "seguridad"],
        "scene": "police or military patrol scene, generic patrol vehicles (no text), "
                 "security checkpoint, uniformed personnel",
        "style": "Documentary photography, neutral composition, 3:2",
    },
    "fire": {
        "keywords": ["incendio", "bomberos", "humo", "llamas", "brigada"],
        "scene": "fire scene with smoke and flames, firefighters in protective gear, "
                 "fire trucks (no text), emergency response",
        "style": "Photojournalism, dramatic lighting from fire, action shot, 3:2",
    },
    "agriculture": {
        "keywords": ["cosecha", "campo", "tractor", "agricultura", "cultivo", "campesinos"],
        "scene": "agricultural field with crops, farming equipment (no brands), rural "
                 "setting, farmers working",
        "style": "Documentary photography, natural outdoor lighting, 3:2",
    },
    "energy-blackout": {
        "keywords": ["apagón", "planta eléctrica", "postes", "ciudad a oscuras", "energía",
                     "electricidad", "corte de luz"],
        "scene": "darkened cityscape or power infrastructure, electrical poles and lines, "
                 "night scene with minimal lighting, utility workers",
        "style": "Documentary photography, low-light urban, dramatic shadows, 3:2",
    },
    "queue-ration": {
        "keywords": ["colas", "ventanilla estatal", "cupones", "fila", "espera", "trámite"],
        "scene": "people waiting in line at generic government window, queue formation, "
                 "administrative setting with blank forms (no readable text)",
        "style": "Documentary photography, neutral composition, 3:2",
    },
    "tech-press": {
        "keywords": ["presentación tecnológica", "lanzamiento", "innovación",
                     "tecnología", "startup"],
        "scene": "technology presentation with generic displays (no brand names), "
                 "presenter with neutral backdrop, tech event setting",
        "style": "Editorial photography, modern lighting, professional, 3:2",
    },
    "street-interview": {
        "keywords": ["entrevista callejera", "opinión pública", "vox populi",
                     "declaraciones"],
        "scene": "street interview scene with journalist holding generic microphone "
                 "(no logo), urban background, candid interaction",
        "style": "Documentary photography, natural street lighting, candid, 3:2",
    },
    "person-press": {
        "keywords": ["discurso", "declaración", "comparecencia", "líder", "político"],
        "scene": "official speaking at podium or formal setting, neutral government "
                 "backdrop (no text), professional atmosphere",
        "style": "Editorial photography, formal composition, neutral lighting, 3:2",
    },
    "generic-city": {
        "keywords": [],
        "scene": "neutral urban scene, city street or plaza, everyday city life, "
                 "balanced composition",
        "style": "Documentary photography, natural lighting, 3:2",
    },
}

# Per-economic-tier scenes. Kept for reference; selection always uses neutral.
ECONOMIC_VARIANTS: dict[str, dict[str, str]] = {
    "storm-provisions": {
        "rich": "modern logistics center with new forklifts, LED lighting, wide "
                "organized warehouse, modern work clothing",
        "moderate": "mixed infrastructure warehouse, modern but worn equipment, "
                    "irregular lighting, varied pallets and boxes",
        "poor": "rustic state warehouse, dim fluorescent lighting, visible scarcity, "
                "generic boxes without logos, improvised solutions",
    },
    "queue-ration": {
        "rich": "modern government service center with digital screens, organized "
                "queue management system",
        "moderate": "government office with basic queue system, worn furniture, "
                    "aging infrastructure",
        "poor": "simple state window with people waiting, worn counters, minimal "
                "equipment",
    },
    "economy-market": {
        "rich": "modern supermarket with organized shelves, abundant products "
                "(no brands visible), modern checkout",
        "moderate": "neighborhood market with mixed product availability, basic "
                    "shelving, some wear and tear",
        "poor": "simple store with limited products on basic shelves, scarce "
                "inventory, improvised displays",
    },
    "government-press": {
        "rich": "professional press room with modern podium, multiple microphones, "
                "good lighting setup",
        "moderate": "formal government room with standard podium, basic backdrop, "
                    "mixed equipment quality",
        "poor": "simple official room with basic podium, plain backdrop, improvised "
                "press setup",
    },
    "hospital": {
        "rich": "modern medical facility with advanced equipment, clean bright spaces",
        "moderate": "functional hospital with adequate equipment, maintained but "
                    "showing use",
        "poor": "basic medical facility with limited equipment, scarce resources",
    },
    "energy-blackout": {
        "rich": "modern power infrastructure, maintenance crews with new gear",
        "moderate": "standard electrical infrastructure, mixed equipment age",
        "poor": "aged electrical infrastructure, improvised repairs, limited equipment",
    },
}

# Classifier themes and scene subtypes resolve to a taxonomy entry
THEME_CONTEXTS: dict[str, str] = {
    "disaster": "storm-impact",
    "justice": "courtroom",
    "politics": "government-press",
    "economy": "economy-market",
    "technology": "tech-press",
    "sports": "generic-city",
    "culture": "generic-city",
    "society": "street-interview",
    "person-press": "person-press",
    "generic": "generic-city",
}

SUBTYPE_CONTEXTS: dict[str, str] = {
    "natural_disaster": "storm-impact",
    "courtroom": "courtroom",
    "press_conference": "government-press",
    "political_protest": "protest",
    "citizen_government_interaction": "street-interview",
    "economic_crisis": "economy-market",
    "military_tension": "police-military",
}

EVENT_CONTEXTS: dict[str, list[str]] = {
    "storm": ["storm-impact", "storm-provisions"],
    "fire": ["fire"],
    "blackout": ["energy-blackout"],
    "protest": ["protest"],
    "earthquake": ["storm-impact"],
    "flood": ["storm-impact"],
}
# Weather-type events need stronger keyword evidence
STRONG_EVIDENCE_EVENTS = {"storm", "flood", "earthquake"}

SUBTYPE_MIN_CONFIDENCE = 0.6


def get_context_rules(context_id: str | None, economic_level: str = "neutral") -> dict:
    """Scene, negative prompt and style for a context or theme id.

    Unknown ids resolve to the generic city entry. ``economic_level`` is
    accepted for call-site symmetry and ignored.
    """
    key = context_id or DEFAULT_CONTEXT
    if key not in CONTEXT_TAXONOMY:
        key = THEME_CONTEXTS.get(key, DEFAULT_CONTEXT)
    entry = CONTEXT_TAXONOMY[key]
    return {
        "context_id": key,
        "scene": entry["scene"],
        "negative": MINIMAL_NEGATIVE,
        "style": entry["style"],
    }


def _keyword_scores(text: str) -> list[tuple[str, list[str]]]:
    scored = [
        (context_id, find_keywords(text, entry["keywords"]))
        for context_id, entry in CONTEXT_TAXONOMY.items()
    ]
    # Stable sort keeps table order on ties
    scored.sort(key=lambda item: len(item[1]), reverse=True)
    return scored


def select_context(
    title: str,
    summary: str = "",
    tags=(),
    entity: EntityDetection | None = None,
    classification: ClassificationResult | None = None,
) -> ContextSelection:
    """Pick the visual context id for an article."""
    text = f"{title or ''} {summary or ''} {' '.join(tags)}".lower()
    entity = entity or EntityDetection()

    if entity.event_type:
        minimum = 2 if entity.event_type in STRONG_EVIDENCE_EVENTS else 1
        for context_id in EVENT_CONTEXTS.get(entity.event_type, []):
            matched = find_keywords(text, CONTEXT_TAXONOMY[context_id]["keywords"])
            if len(matched) >= minimum:
                return ContextSelection(context_id, 90, tuple(matched))
        logger.debug("Event %s without enough keyword evidence", entity.event_type)

    if entity.is_person:
        context_id, matched = _keyword_scores(text)[0]
        if matched:
            return ContextSelection(context_id, min(95, 60 + len(matched) * 10), tuple(matched))
        return ContextSelection("person-press", 50)

    if classification and classification.confidence >= SUBTYPE_MIN_CONFIDENCE:
        context_id = SUBTYPE_CONTEXTS.get(classification.scene_subtype)
        if context_id is None and classification.theme != "generic":
            context_id = THEME_CONTEXTS.get(classification.theme)
        if context_id and context_id != DEFAULT_CONTEXT:
            return ContextSelection(
                context_id,
                int(classification.confidence * 100),
                classification.keywords,
            )

    context_id, matched = _keyword_scores(text)[0]
    if matched:
        return ContextSelection(context_id, min(95, 50 + len(matched) * 15), tuple(matched))

    return ContextSelection(DEFAULT_CONTEXT, 30)
