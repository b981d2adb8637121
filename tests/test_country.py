"""Tests for country detection."""

from __future__ import annotations

from covergen.classify.country import detect_country


def test_title_match_is_high_confidence():
    result = detect_country("Nuevas medidas económicas en Cuba")
    assert result.code == "CU"
    assert result.name == "Cuba"
    assert result.tier == "high"
    assert result.confidence == 0.95


def test_summary_match_is_medium():
    result = detect_country("Noticias del día", "Lluvias torrenciales en Bélgica")
    assert result.code == "BE"
    assert result.tier == "medium"
    assert result.confidence == 0.85


def test_body_match_is_low():
    result = detect_country("Noticias del día", "Resumen breve", "La reunión fue en Madrid.")
    assert result.code == "ES"
    assert result.tier == "low"


def test_earliest_position_wins_over_table_order():
    """Cuba is first in the table but Washington appears first in the text."""
    result = detect_country("Washington y La Habana retoman el diálogo")
    assert result.code == "US"
    assert result.matched_alias == "washington"


def test_longer_alias_wins_at_same_position():
    result = detect_country("Apagón en Santiago de Cuba")
    assert result.code == "CU"
    assert result.matched_alias == "santiago de cuba"


def test_alias_must_be_whole_word():
    """'usa' inside 'causa' is not the United States."""
    result = detect_country("La causa del retraso sigue sin aclararse")
    assert result.code is None
    assert result.name == "global"


def test_no_match_returns_global_sentinel():
    result = detect_country("Sube el precio del pan")
    assert result.code is None
    assert result.tier == "none"
    assert result.confidence == 0.0


def test_content_scan_is_bounded():
    content = "x " * 600 + "Cuba"
    assert detect_country("Titular", "", content).code is None


def test_tags_are_scanned():
    result = detect_country("Titular", tags=("Venezuela",))
    assert result.code == "VE"
    assert result.tier == "low"
