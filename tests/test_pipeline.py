import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from yoga_rag.embeddings.index import IndexNotReadyError, VectorIndex
from yoga_rag.llm.client import LLMError
from yoga_rag.llm.synthesizer import AnswerSynthesizer
from yoga_rag.pipeline import CANNED_MODEL, SAFETY_MODEL, QueryPipeline
from yoga_rag.prompts import GREETING_RESPONSE
from yoga_rag.triage.reviewer import IntentReviewer


@pytest.fixture
def mock_index():
    mock = MagicMock(spec=VectorIndex)
    mock.search = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def isolated_pipeline(safety, mock_index, mock_llm):
    return QueryPipeline(
        reviewer=IntentReviewer(safety),
        safety=safety,
        index=mock_index,
        synthesizer=AnswerSynthesizer(mock_llm, models=["model-a"]),
    )


@pytest.mark.asyncio
async def test_unsafe_query_gets_safety_response(isolated_pipeline, mock_index, mock_llm):
    result = await isolated_pipeline.answer("I'm pregnant, can I do a headstand?")

    assert result.is_unsafe
    assert not result.is_off_topic
    assert result.model == SAFETY_MODEL
    assert "Pregnancy requires specialized yoga guidance." in result.answer
    assert result.safety_warnings == ["Pregnancy requires specialized yoga guidance."]
    assert result.sources == []
    mock_index.search.assert_not_awaited()
    mock_llm.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_greeting_gets_canned_response(isolated_pipeline, mock_index, mock_llm):
    result = await isolated_pipeline.answer("hello")

    assert result.answer == GREETING_RESPONSE
    assert result.is_off_topic
    assert result.model == CANNED_MODEL
    mock_index.search.assert_not_awaited()
    mock_llm.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_off_topic_skips_retrieval(isolated_pipeline, mock_index, mock_llm):
    result = await isolated_pipeline.answer("What's the weather today?")

    assert result.is_off_topic
    assert not result.is_unsafe
    assert result.review.intent == "off_topic"
    assert "specialized in Yoga" in result.answer
    mock_index.search.assert_not_awaited()
    mock_llm.generate.assert_not_awaited()


@pytest.mark.asyncio
async def test_answerable_query_retrieves_and_generates(pipeline, mock_llm):
    result = await pipeline.answer("How do I do a headstand?")

    assert not result.is_unsafe
    assert not result.is_off_topic
    assert result.answer == "Generated answer."
    assert result.model == "model-a"
    assert 1 <= len(result.sources) <= 3
    assert result.sources[0].document.title == "Headstand (Sirsasana)"

    prompt = mock_llm.generate.await_args.args[0]
    assert "[1] Headstand (Sirsasana)" in prompt


@pytest.mark.asyncio
async def test_answerable_query_with_failed_models_uses_template(pipeline, mock_llm):
    mock_llm.generate.side_effect = LLMError("down")
    result = await pipeline.answer("How do I do a headstand?")

    assert result.model == "template"
    assert result.answer.startswith("## Headstand (Sirsasana)")


@pytest.mark.asyncio
async def test_query_embedding_failure_answers_without_context(pipeline, embedder, mock_llm):
    embedder.fail_on_embed = True

    result = await pipeline.answer("How do I do a headstand?")

    assert result.sources == []
    assert result.answer == "Generated answer."
    prompt = mock_llm.generate.await_args.args[0]
    assert "No specific information found in the knowledge base." in prompt


@pytest.mark.asyncio
async def test_unbuilt_index_raises(safety, index, mock_llm):
    pipeline = QueryPipeline(
        reviewer=IntentReviewer(safety),
        safety=safety,
        index=index,
        synthesizer=AnswerSynthesizer(mock_llm, models=["model-a"]),
    )
    with pytest.raises(IndexNotReadyError):
        await pipeline.answer("How do I do a headstand?")


@pytest.mark.asyncio
async def test_concurrent_queries_are_independent(pipeline):
    answerable, greeting, unsafe = await asyncio.gather(
        pipeline.answer("How do I do a headstand?"),
        pipeline.answer("hello"),
        pipeline.answer("I have a hernia, which poses are ok?"),
    )

    assert answerable.review.intent == "answerable"
    assert greeting.review.intent == "greeting"
    assert unsafe.review.intent == "unsafe"
    assert unsafe.sources == []


@pytest.mark.asyncio
async def test_benefits_question_retrieves_headstand(pipeline, built_index):
    query = "What are the benefits of headstand?"

    result = await pipeline.answer(query)
    assert result.review.intent == "answerable"

    top = await built_index.search(query, 1)
    assert top[0].document.title == "Headstand (Sirsasana)"


@pytest.mark.asyncio
async def test_pregnancy_answer_is_the_safety_notice(pipeline, safety, mock_llm):
    result = await pipeline.answer("Can I practice yoga during pregnancy?")

    assert result.review.intent == "unsafe"
    assert "pregnancy" in result.review.detected_categories
    assert result.answer == safety.build_response(["pregnancy"])
    mock_llm.generate.assert_not_awaited()
