"""Tests for theme classification and request analysis."""

from __future__ import annotations

import pytest

from covergen.classify import analyze_request
from covergen.classify.theme import classify_theme
from covergen.config import get_image_settings
from covergen.models import GenerationRequest


def test_disaster_category_passes_gate():
    result = classify_theme(
        "Huracán Melissa deja daños en Santiago", category="Desastres",
    )
    assert result.theme == "disaster"
    assert result.is_disaster is True
    assert result.confidence == 0.9
    assert result.scene_subtype == "natural_disaster"
    assert "category:desastres" in result.reasons


def test_hurricane_headline_with_disaster_category():
    result = classify_theme(
        "Huracán Ana golpea Holguín dejando inundaciones", category="Desastres",
    )
    assert result.theme == "disaster"
    assert result.confidence >= 0.9
    assert result.scene_subtype == "natural_disaster"


def test_disaster_with_affected_citizens():
    result = classify_theme(
        "Recorrido por Holguín",
        "El presidente se reunió con damnificados del temporal.",
        category="Desastres",
    )
    assert result.theme == "disaster"
    assert result.scene_subtype == "citizen_government_interaction"


def test_disaster_title_and_body_keywords():
    result = classify_theme(
        "Huracán provoca inundación en el oriente", "El desastre dejó daños.",
    )
    assert result.theme == "disaster"
    assert "title_and_body_keywords" in result.reasons


def test_disaster_tag_and_title_keywords():
    result = classify_theme("El huracán se acerca a la costa", tags=("Huracán Melissa",))
    assert result.theme == "disaster"
    assert "tag_and_title_keywords" in result.reasons


def test_overlapping_disaster_keywords_count_once():
    """'incendio forestal' and 'incendio' in the title are one signal."""
    result = classify_theme("Incendio forestal en Pinar del Río", "El incendio sigue activo.")
    assert result.is_disaster is False
    assert result.theme != "disaster"


def test_scattered_disaster_word_does_not_trigger_disaster():
    result = classify_theme(
        "Tribunal dicta sentencia por corrupción",
        content="Meses atrás, un incendio destruyó parte de los archivos.",
    )
    assert result.theme == "justice"
    assert result.is_disaster is False
    assert result.scene_subtype == "courtroom"
    assert result.confidence == 0.9


def test_justice_needs_only_one_keyword():
    result = classify_theme("La fiscalía investiga el caso")
    assert result.theme == "justice"
    assert result.confidence == 0.7


def test_press_conference_counts_as_politics():
    result = classify_theme("Presidente ofrece conferencia de prensa")
    assert result.theme == "politics"
    assert result.scene_subtype == "press_conference"
    assert result.confidence == 0.76
    assert "conferencia de prensa" in result.keywords


def test_president_at_press_conference_is_not_a_disaster():
    result = classify_theme("Presidente recibe a delegación en conferencia de prensa")
    assert result.is_disaster is False
    assert result.theme == "politics"
    assert result.scene_subtype == "press_conference"
    assert "presidente" in result.keywords


def test_military_tension_overrides_subtype():
    result = classify_theme(
        "Ataque con misiles cerca de la frontera",
        "El gobierno y el presidente condenan la guerra.",
    )
    assert result.theme == "politics"
    assert result.military_tension is True
    assert result.scene_subtype == "military_tension"


def test_single_topic_keyword_below_threshold():
    assert classify_theme("Sube la inflación").theme == "generic"
    result = classify_theme("Sube la inflación", keywords_threshold=1)
    assert result.theme == "economy"
    assert result.scene_subtype == "economic_crisis"


def test_short_keywords_match_whole_words_only():
    """'ia' inside 'historia' is not technology."""
    assert classify_theme("La historia de la familia").theme == "generic"


def test_disaster_threshold_can_disable_gate():
    result = classify_theme(
        "Lluvias intensas", category="Desastres", disaster_threshold=0.95,
    )
    assert result.is_disaster is False


def test_category_fallback():
    result = classify_theme("Nota breve", category="Economía")
    assert result.theme == "economy"
    assert result.confidence == 0.5
    assert result.reasons == ("category_fallback:economía",)


def test_generic_default():
    result = classify_theme("Un día cualquiera")
    assert result.theme == "generic"
    assert result.confidence == 0.3
    assert result.reasons == ("no_strong_signals",)


def test_analyze_request_forced_theme(sample_request):
    request = GenerationRequest(
        request_id="r", title=sample_request.title, force_theme="sports",
    )
    analysis = analyze_request(request, get_image_settings({}))
    assert analysis.classification.theme == "sports"
    assert analysis.classification.confidence == 1.0
    assert analysis.classification.reasons == ("forced",)


def test_analyze_request_unknown_forced_theme():
    request = GenerationRequest(request_id="r", title="x", force_theme="weather")
    with pytest.raises(ValueError):
        analyze_request(request, get_image_settings({}))


def test_analyze_request_runs_all_detectors(sample_request):
    analysis = analyze_request(sample_request, get_image_settings({}))
    assert analysis.classification.theme == "politics"
    assert analysis.country.code == "CU"
    assert analysis.context.context_id
