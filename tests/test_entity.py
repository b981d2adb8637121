"""Tests for person and event detection."""

from __future__ import annotations

import pytest

from covergen.classify.entity import (
    detect_entities,
    detect_event,
    extract_name_candidates,
    is_generic_title,
)
from covergen.models import EntityDetection


def test_tagged_person_with_single_mention():
    """One mention plus a tag match is enough; the title adds to the score."""
    result = detect_entities(
        "Mike Waltz critica al régimen",
        "Declaraciones del asesor ante la prensa.",
        tags=("Mike Waltz",),
    )
    assert result.is_person is True
    assert result.primary_person == "Mike Waltz"
    assert result.mentions == 1
    assert result.in_tags is True
    assert result.confidence == 1.0
    assert result.event_type is None


def test_tag_alone_accepts_single_mention():
    result = detect_entities("Mike Waltz declara ante el Senado", tags=("Mike Waltz",))
    assert result.is_person is True
    assert result.primary_person == "Mike Waltz"
    assert result.mentions == 1


def test_named_hurricane_is_an_event():
    result = detect_entities("Huracán Ana golpea Holguín dejando inundaciones")
    assert result.is_person is False
    assert result.event_type == "storm"
    assert result.event_name == "Huracán Ana"


def test_two_mentions_without_tag():
    result = detect_entities(
        "Juan Pérez visita Madrid",
        "Juan Pérez habló con los vecinos.",
    )
    assert result.is_person is True
    assert result.primary_person == "Juan Pérez"
    assert result.mentions == 2


def test_single_untagged_mention_is_rejected():
    result = detect_entities("Juan Pérez visitó el hospital", "Breve nota de la tarde.")
    assert result.is_person is False
    assert result.primary_person is None


def test_generic_official_title_is_not_a_person():
    result = detect_entities(
        "Ministro de Economía anuncia medidas",
        "El Ministro de Economía habló en la televisión.",
        tags=("Ministro de Economía",),
    )
    assert result.is_person is False


def test_event_takes_priority_over_person():
    result = detect_entities(
        "Huracán Melissa golpea el oriente",
        "Melissa Torres Vega reporta desde Holguín. Melissa Torres Vega confirma daños.",
        tags=("Melissa Torres Vega",),
    )
    assert result.event_type == "storm"
    assert result.event_name == "Huracán Melissa"
    assert result.is_person is False


def test_person_detector_can_be_disabled():
    result = detect_entities(
        "Mike Waltz critica al régimen", tags=("Mike Waltz",), enabled=False,
    )
    assert result == EntityDetection()


def test_empty_text_returns_empty_detection():
    assert detect_entities("", "") == EntityDetection()


@pytest.mark.parametrize("text,event_type", [
    ("Sismo de 5.2 sacude Granma", "earthquake"),
    ("Incendio en el vertedero de Calle 100", "fire"),
    ("Nuevo apagón afecta a media isla", "blackout"),
    ("Inundaciones en el litoral habanero", "flood"),
    ("Protesta en Caimanera por la falta de agua", "protest"),
])
def test_detect_event_types(text, event_type):
    found = detect_event(text)
    assert found is not None
    assert found[0] == event_type


def test_storm_requires_capitalized_name():
    assert detect_event("la tormenta de anoche dejó lluvias") is None


def test_name_candidates_skip_stopword_sequences():
    candidates = extract_name_candidates("Estados Unidos condena. Raúl Castro Ruz responde")
    assert "Estados Unidos" not in candidates
    assert "Raúl Castro Ruz" in candidates


def test_is_generic_title():
    assert is_generic_title("Canciller de Cuba")
    assert not is_generic_title("Bruno Rodríguez")


def test_entity_cannot_be_both_person_and_event():
    with pytest.raises(ValueError):
        EntityDetection(is_person=True, primary_person="X Y", event_type="storm")
