"""Tests for app.core.analysis_pipeline: concurrent tasks, normalization, job outcome."""

import asyncio

import pytest

from app.core.errors import ErrorCode
from app.core.llm import FailureKind
from app.core.analysis_pipeline import AnalysisPipeline, normalize_result, parse_report, parse_tags
from app.core.personas import resolve_persona
from app.core.provider_gateway import ProviderGateway
from app.core.result import Err, Ok
from app.core.schemas_orchestration import (
    ArtifactKind,
    ArtifactRef,
    GenerationResult,
    JobStatus,
    OutputFormat,
    Persona,
    ProviderName,
)
from tests.fakes.fake_providers import FakeProvider, fixed_settings, reply

FULL_ANALYSIS = ["description", "style", "techniques", "keywords"]

ARTWORK = ArtifactRef(
    artifact_id="A1",
    owner_id="artist-1",
    title="Harbour at Dusk",
    image_url="https://cdn.example.com/a1.jpg",
    medium="Oil on canvas",
)


def _pipeline(gemini: FakeProvider, chatgpt: FakeProvider, **settings_kwargs) -> AnalysisPipeline:
    gateway = ProviderGateway(
        providers={ProviderName.GEMINI: gemini, ProviderName.CHATGPT: chatgpt},
        settings_accessor=fixed_settings(**settings_kwargs),
        timeout_seconds=1.0,
    )
    return AnalysisPipeline(gateway)


def _raw(text: str) -> GenerationResult:
    return GenerationResult(
        task_type="techniques", text=text, confidence=0.9, provider_used=ProviderName.GEMINI
    )


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def test_parse_tags_trims_and_dedupes_case_insensitively():
    assert parse_tags("Oil Paint, oil paint ,  Watercolor") == ["Oil Paint", "Watercolor"]


def test_parse_tags_handles_fences_and_bullets():
    raw = "```\n- Impressionism\n- Plein Air, impressionism\n```"
    assert parse_tags(raw) == ["Impressionism", "Plein Air"]


def test_normalize_tags_populates_structured_payload():
    result = normalize_result(_raw("Oil Paint, oil paint ,  Watercolor"), OutputFormat.TAGS)

    assert isinstance(result, Ok)
    assert result.value.structured_payload == ["Oil Paint", "Watercolor"]
    assert result.value.text is None


def test_normalize_empty_tag_list_is_malformed():
    result = normalize_result(_raw(" , ,  "), OutputFormat.TAGS)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.MALFORMED_OUTPUT


def test_parse_report_reads_summary_and_recommendations():
    raw = '{"summary": " Cohesive body of work. ", "recommendations": ["Add one large piece", {"area": "pricing"}]}'

    assert parse_report(raw) == (
        "Cohesive body of work.",
        ["Add one large piece", '{"area": "pricing"}'],
    )


@pytest.mark.parametrize(
    "raw",
    [
        "Your portfolio is lovely.",
        '{"summary": "Fine."}',
        '{"recommendations": ["More work"]}',
        '{"summary": "", "recommendations": []}',
        '{"summary": "Fine.", "recommendations": "More work"}',
        '["summary", "recommendations"]',
    ],
)
def test_report_missing_summary_or_recommendations_is_malformed(raw):
    result = normalize_result(_raw(raw), OutputFormat.REPORT)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.MALFORMED_OUTPUT


def test_normalize_prose_keeps_text():
    result = normalize_result(_raw("  A calm harbour.\n\nBoats rest.  "), OutputFormat.PROSE)

    assert isinstance(result, Ok)
    assert result.value.text == "A calm harbour.\n\nBoats rest."
    assert result.value.structured_payload is None


def test_normalize_line_takes_first_line_without_quotes():
    result = normalize_result(_raw('\n"Evening Tide"\nAlternative: Dusk'), OutputFormat.LINE)

    assert isinstance(result, Ok)
    assert result.value.text == "Evening Tide"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unknown_task_type_rejected_before_dispatch():
    gemini = FakeProvider(ProviderName.GEMINI)
    pipeline = _pipeline(gemini, FakeProvider(ProviderName.CHATGPT))

    result = await pipeline.run_analysis(ARTWORK, ["description", "horoscope"], Persona.CURATOR)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.INVALID_INPUT
    assert result.error.details["unknown"] == ["horoscope"]
    assert gemini.call_count == 0


@pytest.mark.asyncio
async def test_empty_task_list_rejected():
    pipeline = _pipeline(FakeProvider(ProviderName.GEMINI), FakeProvider(ProviderName.CHATGPT))

    result = await pipeline.run_analysis(ARTWORK, [], Persona.CURATOR)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.INVALID_INPUT


def test_missing_artifact_rejected():
    pipeline = _pipeline(FakeProvider(ProviderName.GEMINI), FakeProvider(ProviderName.CHATGPT))

    result = pipeline.validate(None, FULL_ANALYSIS)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.INVALID_INPUT


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def test_build_request_uses_catalog_temperature_and_persona_framing():
    pipeline = _pipeline(FakeProvider(ProviderName.GEMINI), FakeProvider(ProviderName.CHATGPT))

    description = pipeline.build_request("description", ARTWORK, Persona.MENTOR)
    keywords = pipeline.build_request("keywords", ARTWORK, Persona.MENTOR)

    assert description.temperature == 0.7
    assert keywords.temperature == 0.3
    assert "Harbour at Dusk" in description.prompt_template
    assert "Artist Mentor" in description.parameters["system_instruction"]
    assert description.parameters["image_url"] == ARTWORK.image_url
    assert keywords.parameters["output_format"] == "tags"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_verified_artist_full_analysis_completes_with_mean_confidence():
    confidences = {"description": 0.9, "style": 0.8, "techniques": 0.7, "keywords": 0.6}
    gemini = FakeProvider(
        ProviderName.GEMINI,
        routes={
            "description": reply("A calm harbour at dusk. Boats rest.", confidence=0.9),
            "style": reply("Impressionism, Tonalism", confidence=0.8),
            "techniques": reply("Oil Paint, oil paint ,  Watercolor", confidence=0.7),
            "keywords": reply("harbour, dusk, boats", confidence=0.6),
        },
    )
    chatgpt = FakeProvider(ProviderName.CHATGPT)
    persona = resolve_persona("verified_artist")

    result = await _pipeline(gemini, chatgpt).run_analysis(ARTWORK, FULL_ANALYSIS, persona)

    assert persona == Persona.MENTOR
    assert isinstance(result, Ok)
    job = result.value
    assert job.status == JobStatus.COMPLETE
    assert set(job.results) == set(FULL_ANALYSIS)
    assert job.results["techniques"].structured_payload == ["Oil Paint", "Watercolor"]
    assert job.aggregate_confidence == pytest.approx(sum(confidences.values()) / 4)
    assert all(not r.is_fallback_used for r in job.results.values())
    assert chatgpt.call_count == 0


@pytest.mark.asyncio
async def test_two_failed_tasks_give_partial_with_confidence_over_successes():
    gemini = FakeProvider(
        ProviderName.GEMINI,
        routes={
            "description": reply("A calm harbour.", confidence=0.9),
            "style": FailureKind.TIMEOUT,
            "techniques": reply("Oil", confidence=0.5),
            "keywords": FailureKind.RATE_LIMITED,
        },
    )
    chatgpt = FakeProvider(
        ProviderName.CHATGPT,
        routes={"style": FailureKind.SERVER_ERROR, "keywords": FailureKind.TIMEOUT},
    )

    result = await _pipeline(gemini, chatgpt).run_analysis(ARTWORK, FULL_ANALYSIS, Persona.CURATOR)

    job = result.value
    assert job.status == JobStatus.PARTIAL
    assert set(job.results) == {"description", "techniques"}
    assert set(job.failures) == {"style", "keywords"}
    assert job.failures["style"].code == ErrorCode.PROVIDER_UNAVAILABLE
    assert job.aggregate_confidence == pytest.approx(0.7)
    # one fallback hop per failed task, never more
    assert chatgpt.calls_for("style") == 1
    assert chatgpt.calls_for("keywords") == 1


@pytest.mark.asyncio
async def test_all_tasks_failing_gives_failed_without_confidence():
    gemini = FakeProvider(ProviderName.GEMINI, default=FailureKind.REJECTED)
    chatgpt = FakeProvider(ProviderName.CHATGPT)

    result = await _pipeline(gemini, chatgpt).run_analysis(ARTWORK, FULL_ANALYSIS, Persona.CURATOR)

    job = result.value
    assert job.status == JobStatus.FAILED
    assert job.results == {}
    assert job.aggregate_confidence is None
    assert len(job.failures) == 4


@pytest.mark.asyncio
async def test_malformed_primary_output_falls_back_once_and_wins():
    gemini = FakeProvider(ProviderName.GEMINI, routes={"keywords": " , , "}, default="Fine.")
    chatgpt = FakeProvider(ProviderName.CHATGPT, routes={"keywords": "Harbour, Dusk"})

    result = await _pipeline(gemini, chatgpt).run_analysis(
        ARTWORK, ["description", "keywords"], Persona.CURATOR
    )

    job = result.value
    assert job.status == JobStatus.COMPLETE
    assert chatgpt.calls_for("keywords") == 1
    assert job.results["keywords"].structured_payload == ["Harbour", "Dusk"]
    assert job.results["keywords"].provider_used == ProviderName.CHATGPT
    assert job.results["keywords"].is_fallback_used is True


@pytest.mark.asyncio
async def test_malformed_output_from_both_providers_is_task_error_not_empty_result():
    gemini = FakeProvider(ProviderName.GEMINI, routes={"keywords": " , , "}, default="Fine.")
    chatgpt = FakeProvider(ProviderName.CHATGPT, routes={"keywords": "- , -"})

    result = await _pipeline(gemini, chatgpt).run_analysis(
        ARTWORK, ["description", "keywords"], Persona.CURATOR
    )

    job = result.value
    assert job.status == JobStatus.PARTIAL
    assert job.failures["keywords"].code == ErrorCode.MALFORMED_OUTPUT
    assert [a["provider"] for a in job.failures["keywords"].details["attempts"]] == [
        "gemini",
        "chatgpt",
    ]
    assert "keywords" not in job.results
    assert chatgpt.calls_for("keywords") == 1


@pytest.mark.asyncio
async def test_malformed_output_without_fallback_is_single_attempt():
    gemini = FakeProvider(ProviderName.GEMINI, routes={"keywords": " , , "})
    chatgpt = FakeProvider(ProviderName.CHATGPT, routes={"keywords": "Harbour"})

    result = await _pipeline(gemini, chatgpt, fallback=None).run_analysis(
        ARTWORK, ["keywords"], Persona.CURATOR
    )

    job = result.value
    assert job.status == JobStatus.FAILED
    assert job.failures["keywords"].code == ErrorCode.MALFORMED_OUTPUT
    assert chatgpt.call_count == 0


@pytest.mark.asyncio
async def test_portfolio_report_is_parsed_into_summary_and_recommendations():
    gemini = FakeProvider(
        ProviderName.GEMINI,
        routes={
            "portfolio_pricing": '```json\n{"summary": "Prices are consistent.", '
            '"recommendations": ["Raise small works 10%", "List print editions"]}\n```',
        },
    )
    profile = ArtifactRef(artifact_id="artist-1", kind=ArtifactKind.PROFILE, title="Ada Marsh")

    result = await _pipeline(gemini, FakeProvider(ProviderName.CHATGPT)).run_analysis(
        profile, ["portfolio_pricing"], Persona.MENTOR
    )

    job = result.value
    assert job.status == JobStatus.COMPLETE
    report = job.results["portfolio_pricing"]
    assert report.text == "Prices are consistent."
    assert report.structured_payload == ["Raise small works 10%", "List print editions"]


@pytest.mark.asyncio
async def test_crashing_task_does_not_abort_siblings():
    gemini = FakeProvider(
        ProviderName.GEMINI,
        routes={"style": RuntimeError("adapter bug")},
        default="Fine, output",
    )
    chatgpt = FakeProvider(ProviderName.CHATGPT)

    result = await _pipeline(gemini, chatgpt).run_analysis(ARTWORK, FULL_ANALYSIS, Persona.CURATOR)

    job = result.value
    assert job.status == JobStatus.PARTIAL
    assert job.failures["style"].code == ErrorCode.UNEXPECTED_ERROR
    assert set(job.results) == {"description", "techniques", "keywords"}


@pytest.mark.asyncio
async def test_tasks_are_dispatched_concurrently():
    gemini = FakeProvider(ProviderName.GEMINI, default="tag")
    gemini.hold()
    pipeline = _pipeline(gemini, FakeProvider(ProviderName.CHATGPT))

    run = asyncio.create_task(pipeline.run_analysis(ARTWORK, FULL_ANALYSIS, Persona.CURATOR))
    for _ in range(10):
        await asyncio.sleep(0)

    # every task is in flight before any has returned
    assert gemini.call_count == 4
    assert not run.done()

    gemini.release.set()
    result = await run
    assert result.value.status == JobStatus.COMPLETE


@pytest.mark.asyncio
async def test_duplicate_task_types_run_once():
    gemini = FakeProvider(ProviderName.GEMINI, default="A sentence.")
    pipeline = _pipeline(gemini, FakeProvider(ProviderName.CHATGPT))

    result = await pipeline.run_analysis(
        ARTWORK, ["description", "description"], Persona.CURATOR
    )

    assert result.value.task_types == ["description"]
    assert gemini.call_count == 1
