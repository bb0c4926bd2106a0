"""
Тесты фасада RagPipeline: готовность бэкенда, загрузка знаний и генерация.

Все зависимости передаются явно: KeywordEmbedding, SimpleVectorStore и LLM-заглушки,
поэтому ни модели, ни Weaviate, ни сервер LLM не нужны.
"""

import asyncio
from io import StringIO
from pathlib import Path
from typing import List

import pytest
from llama_index.core.vector_stores import SimpleVectorStore

from conftest import KEYWORD_DIM, FailingLLM, GatedLLM, NotServingLLM, ScriptedLLM
from edge_rag.config import EmbeddingConfig, PipelineConfig, RetrievalConfig
from edge_rag.pipeline import PipelineNotReadyError, RagPipeline, Readiness
from edge_rag.types import LanguageModelResponse, TaskType

ASSET = "\n".join([
    "<chunk_splitter> Cats are mammals.",
    "They have fur.",
    "<chunk_splitter> Dogs bark.",
    "<chunk_splitter> Fish swim.",
])


def _config(**kwargs) -> PipelineConfig:
    return PipelineConfig(embedding=EmbeddingConfig(embed_dim=KEYWORD_DIM), **kwargs)


def _pipeline(keyword_embedding, llm, **kwargs) -> RagPipeline:
    return RagPipeline(_config(**kwargs), embed_model=keyword_embedding, vector_store=SimpleVectorStore(), llm=llm)


def test_ready_after_initialization(keyword_embedding, scripted_llm) -> None:
    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        assert pipeline.wait_until_ready(timeout=5) is Readiness.READY
        assert pipeline.failure is None


def test_ingest_file_and_generate(tmp_path: Path, keyword_embedding, scripted_llm) -> None:
    asset = tmp_path / "facts.txt"
    asset.write_text(ASSET, encoding="utf-8")

    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        pipeline.wait_until_ready(timeout=5)
        assert pipeline.ingest(asset) == 3
        assert pipeline.memory.recorded_count == 3

        answer = asyncio.run(pipeline.generate("What are cats?"))

    assert answer == scripted_llm.answer
    prompt = scripted_llm.prompts[-1]
    assert "Cats are mammals. They have fur." in prompt
    assert prompt.endswith("What are cats?")


def test_ingest_stream_source(keyword_embedding, scripted_llm) -> None:
    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        assert pipeline.ingest(StringIO("A single fact about a bird.")) == 1
        assert asyncio.run(pipeline.aingest(StringIO(ASSET))) == 3
        assert pipeline.memory.recorded_count == 4


def test_ingest_without_chunks_does_not_touch_memory(monkeypatch, tmp_path: Path, keyword_embedding, scripted_llm) -> None:
    calls: List[list] = []

    async def _spy(texts):
        calls.append(list(texts))
        return []

    empty = tmp_path / "empty.txt"
    empty.write_text("\n  \n<chunk_splitter>\n", encoding="utf-8")

    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        monkeypatch.setattr(pipeline.memory, "record_batched_items", _spy)
        assert pipeline.ingest(empty) == 0

    assert calls == []


def test_ingest_missing_asset_fails_loudly(tmp_path: Path, keyword_embedding, scripted_llm) -> None:
    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        with pytest.raises(FileNotFoundError):
            pipeline.ingest(tmp_path / "missing.txt")


def test_generate_builds_default_retrieval_request(monkeypatch, keyword_embedding, scripted_llm) -> None:
    captured = []

    async def _invoke(request, callback=None):
        captured.append(request)
        return LanguageModelResponse(text="ok", done=True)

    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        pipeline.wait_until_ready(timeout=5)
        monkeypatch.setattr(pipeline.chain, "invoke", _invoke)
        assert asyncio.run(pipeline.generate("Why do dogs bark?")) == "ok"

    request = captured[0]
    assert request.query == "Why do dogs bark?"
    assert request.config == RetrievalConfig(top_k=3, min_similarity=0.0, task_type=TaskType.QUESTION_ANSWERING)


def test_generate_returns_terminal_text_not_partial(keyword_embedding, scripted_llm) -> None:
    seen: List[LanguageModelResponse] = []
    with _pipeline(keyword_embedding, scripted_llm) as pipeline:
        pipeline.wait_until_ready(timeout=5)
        pipeline.ingest(StringIO(ASSET))
        answer = asyncio.run(pipeline.generate("cats?", seen.append))

    assert answer == seen[-1].text == scripted_llm.answer
    assert all(answer != p.text for p in seen[:-1])


def test_failed_initialization_is_surfaced(keyword_embedding) -> None:
    with _pipeline(keyword_embedding, FailingLLM()) as pipeline:
        assert pipeline.wait_until_ready(timeout=5) is Readiness.FAILED
        assert isinstance(pipeline.failure, ConnectionError)

        with pytest.raises(PipelineNotReadyError) as exc_info:
            asyncio.run(pipeline.generate("anything"))
        assert exc_info.value.__cause__ is pipeline.failure

        with pytest.raises(PipelineNotReadyError):
            pipeline.ingest(StringIO(ASSET))


def test_backend_reporting_not_ready_counts_as_failure(keyword_embedding) -> None:
    with _pipeline(keyword_embedding, NotServingLLM()) as pipeline:
        assert pipeline.wait_until_ready(timeout=5) is Readiness.FAILED
        assert isinstance(pipeline.failure, RuntimeError)


def test_generate_fails_fast_while_initializing(keyword_embedding) -> None:
    llm = GatedLLM()
    with _pipeline(keyword_embedding, llm) as pipeline:
        assert pipeline.readiness is Readiness.UNINITIALIZED
        assert pipeline.failure is None
        with pytest.raises(PipelineNotReadyError):
            asyncio.run(pipeline.generate("too early"))

        # загрузка знаний не зависит от модели и разрешена во время прогрева
        assert pipeline.ingest(StringIO(ASSET)) == 3

        llm.gate.set()
        assert pipeline.wait_until_ready(timeout=5) is Readiness.READY
        assert asyncio.run(pipeline.generate("now")) == llm.answer


def test_custom_separator_and_retrieval_config(keyword_embedding) -> None:
    from edge_rag.config import ChunkingConfig

    llm = ScriptedLLM()
    cfg = dict(chunking=ChunkingConfig(separator="###"), retrieval=RetrievalConfig(top_k=1), prompt_template="{0}||{1}")
    with _pipeline(keyword_embedding, llm, **cfg) as pipeline:
        pipeline.wait_until_ready(timeout=5)
        assert pipeline.ingest(StringIO("### dog facts\n### fish facts")) == 2
        asyncio.run(pipeline.generate("fish"))

    assert llm.prompts[-1] == "fish facts||fish"
