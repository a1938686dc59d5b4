"""Tests for app.core.prompt_catalog."""

import pytest

from app.core.prompt_catalog import (
    PROMPT_CATALOG,
    PromptEntry,
    build_prompt,
)
from app.core.schemas_orchestration import OutputFormat, TemperatureClass


def test_catalog_covers_analysis_tasks_with_expected_presets():
    assert PROMPT_CATALOG["description"].temperature == 0.7
    assert PROMPT_CATALOG["description"].output_format == OutputFormat.PROSE
    for task_type in ("style", "techniques", "keywords"):
        assert PROMPT_CATALOG[task_type].temperature == 0.3
        assert PROMPT_CATALOG[task_type].output_format == OutputFormat.TAGS
    assert PROMPT_CATALOG["title"].output_format == OutputFormat.LINE


def test_build_prompt_substitutes_descriptor_and_blanks_unknowns():
    built = build_prompt("style", {"title": "Harbour at Dusk", "image_url": "https://x/a.jpg"})

    assert "Artwork title: Harbour at Dusk" in built.template
    assert "Image: https://x/a.jpg" in built.template
    assert "Medium: \n" in built.template
    assert "{" not in built.template
    assert built.temperature == 0.3


def test_build_prompt_unknown_task_raises():
    with pytest.raises(KeyError):
        build_prompt("horoscope", {})


def test_alternate_catalog_extends_task_types():
    catalog = {
        **PROMPT_CATALOG,
        "mood": PromptEntry(
            template="Name the mood of {title}.",
            temperature_class=TemperatureClass.BALANCED,
            output_format=OutputFormat.LINE,
        ),
    }

    built = build_prompt("mood", {"title": "Storm"}, catalog=catalog)

    assert built.template == "Name the mood of Storm."
    assert built.temperature == 0.5


def test_portfolio_tasks_request_json_reports():
    portfolio_tasks = [t for t in PROMPT_CATALOG if t.startswith("portfolio_")]

    assert sorted(portfolio_tasks) == [
        "portfolio_composition",
        "portfolio_market",
        "portfolio_presentation",
        "portfolio_pricing",
    ]
    for task_type in portfolio_tasks:
        built = build_prompt(task_type, {"title": "Ada Marsh", "description": "12 coastal oils"})
        assert built.output_format == OutputFormat.REPORT
        assert '{"summary": "<one paragraph>", "recommendations"' in built.template
        assert "Artist: Ada Marsh" in built.template
        assert "12 coastal oils" in built.template


def test_bio_task_renders_scraped_content_as_prose():
    built = build_prompt(
        "bio", {"description": "Ada paints the Cornish coast.", "source_url": "https://ada.example"}
    )

    assert built.output_format == OutputFormat.PROSE
    assert "Source: https://ada.example" in built.template
    assert built.template.endswith("Ada paints the Cornish coast.")
