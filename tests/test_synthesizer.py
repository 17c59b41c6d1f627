import asyncio

import pytest

from yoga_rag.embeddings.models import SearchResult
from yoga_rag.llm.client import LLMError, parse_json_object
from yoga_rag.llm.fallback import AllModelsFailedError, first_success
from yoga_rag.llm.synthesizer import (
    EMPTY_CONTEXT,
    TEMPLATE_MODEL,
    AnswerSynthesizer,
    build_context,
)

from conftest import make_doc


@pytest.fixture
def results():
    return [
        SearchResult(
            document=make_doc(
                "headstand",
                "Headstand (Sirsasana)",
                "Balance on the forearms and crown of the head.",
                precautions="Avoid with neck problems.",
            ),
            score=0.82,
        ),
        SearchResult(
            document=make_doc("corpse", "Corpse Pose (Shavasana)", "Lie down and relax."),
            score=0.41,
        ),
    ]


def test_context_lists_results_in_rank_order(results):
    context = build_context(results)
    assert context.index("[1] Headstand (Sirsasana)") < context.index("[2] Corpse Pose (Shavasana)")
    assert "Precautions: Avoid with neck problems." in context


def test_context_without_results():
    assert build_context([]) == EMPTY_CONTEXT


@pytest.mark.asyncio
async def test_first_model_success_short_circuits(mock_llm, results):
    synth = AnswerSynthesizer(mock_llm, models=["model-a", "model-b"])

    answer, model = await synth.synthesize_with_model("headstand?", results)

    assert answer == "Generated answer."
    assert model == "model-a"
    assert mock_llm.generate.await_count == 1
    prompt = mock_llm.generate.await_args.args[0]
    assert "[1] Headstand (Sirsasana)" in prompt


@pytest.mark.asyncio
async def test_falls_through_to_next_model(mock_llm, results):
    mock_llm.generate.side_effect = [LLMError("rate limited"), "Second model answer."]
    synth = AnswerSynthesizer(mock_llm, models=["model-a", "model-b", "model-c"])

    answer, model = await synth.synthesize_with_model("headstand?", results)

    assert answer == "Second model answer."
    assert model == "model-b"
    assert [c.kwargs["model"] for c in mock_llm.generate.await_args_list] == ["model-a", "model-b"]


@pytest.mark.asyncio
async def test_all_models_failing_returns_template(mock_llm, results):
    mock_llm.generate.side_effect = LLMError("unreachable")
    synth = AnswerSynthesizer(mock_llm, models=["model-a", "model-b"])

    answer, model = await synth.synthesize_with_model("headstand?", results)

    assert model == TEMPLATE_MODEL
    assert answer.startswith("## Headstand (Sirsasana)")
    assert "Avoid with neck problems." in answer
    assert mock_llm.generate.await_count == 2


@pytest.mark.asyncio
async def test_template_without_results(mock_llm):
    mock_llm.generate.side_effect = LLMError("unreachable")
    synth = AnswerSynthesizer(mock_llm, models=["model-a"])

    answer = await synth.synthesize("levitation", [])

    assert 'Limited information available about "levitation"' in answer


@pytest.mark.asyncio
async def test_slow_model_times_out(mock_llm, results):
    async def generate(prompt, model, system_prompt=None):
        if model == "slow":
            await asyncio.sleep(5)
        return f"answer from {model}"

    mock_llm.generate.side_effect = generate
    synth = AnswerSynthesizer(mock_llm, models=["slow", "fast"], attempt_timeout=0.05)

    answer, model = await synth.synthesize_with_model("headstand?", results)

    assert model == "fast"
    assert answer == "answer from fast"


@pytest.mark.asyncio
async def test_unsafe_flag_adds_medical_alert(mock_llm, results):
    synth = AnswerSynthesizer(mock_llm, models=["model-a"])
    await synth.synthesize("headstand?", results, is_unsafe=True)
    safe_prompt = mock_llm.generate.await_args.kwargs["system_prompt"]

    mock_llm.generate.reset_mock()
    await synth.synthesize("headstand?", results, is_unsafe=False)
    plain_prompt = mock_llm.generate.await_args.kwargs["system_prompt"]

    assert safe_prompt != plain_prompt
    assert safe_prompt.startswith(plain_prompt)


@pytest.mark.asyncio
async def test_first_success_with_no_models():
    async def attempt(model):
        return "never"

    with pytest.raises(AllModelsFailedError):
        await first_success([], attempt)


def test_parse_json_object_strips_code_fences():
    raw = '```json\n{"intent": "greeting"}\n```'
    assert parse_json_object(raw) == {"intent": "greeting"}


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", ""])
def test_parse_json_object_rejects_non_objects(raw):
    with pytest.raises(LLMError):
        parse_json_object(raw)
