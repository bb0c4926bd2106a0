#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from enum import Enum
from pathlib import Path
from typing import IO, Optional, Sequence, Union

from llama_index.core.embeddings import BaseEmbedding
from llama_index.core.llms import LLM
from llama_index.core.vector_stores.types import BasePydanticVectorStore

from .backend import LanguageModelBackend
from .chain import ChainConfig, RetrievalAndInferenceChain
from .chunker import Chunker
from .config import PipelineConfig
from .embeddings import make_embed_model
from .llm import OpenAIChatLLM
from .memory import SemanticTextMemory
from .prompt import PromptBuilder
from .types import ProgressCallback, RetrievalRequest
from .vectorstore import make_vector_store

logger = logging.getLogger(__name__)

Source = Union[str, Path, IO[str]]


class Readiness(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class PipelineNotReadyError(RuntimeError):
    """Бэкенд языковой модели ещё не готов или не смог инициализироваться."""


class RagPipeline:
    """Пайплайн RAG: владеет памятью, бэкендом модели и цепочкой.

    - при создании запускает прогрев модели в отдельном потоке и не ждёт его
    - ingest(): читает текст, режет на чанки, записывает их в память (блокирующе)
    - generate(): извлекает контекст и генерирует ответ (корутина)

    Зависимости можно передать явно (embed_model, vector_store, llm), иначе они
    создаются из конфигурации.
    """
    def __init__(
        self,
        config: PipelineConfig,
        *,
        embed_model: Optional[BaseEmbedding] = None,
        vector_store: Optional[BasePydanticVectorStore] = None,
        llm: Optional[LLM] = None,
    ) -> None:
        self._config = config
        self._chunker = Chunker(config.chunking.separator)

        if embed_model is None:
            embed_model = make_embed_model(config.embedding)
        if vector_store is None:
            vector_store = make_vector_store(config.vector_store)
        if llm is None:
            llm = OpenAIChatLLM.from_config(config.llm)

        self._memory = SemanticTextMemory(vector_store, embed_model, config.embedding.embed_dim)
        self._backend = LanguageModelBackend(llm)
        self._chain = RetrievalAndInferenceChain(
            ChainConfig(
                language_model=self._backend,
                prompt_builder=PromptBuilder(config.prompt_template),
                semantic_memory=self._memory,
            )
        )

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="edge-rag-init")
        self._init_future: Future = self._executor.submit(self._backend.initialize)
        self._init_future.add_done_callback(self._log_initialization)

    @property
    def memory(self) -> SemanticTextMemory:
        return self._memory

    @property
    def chain(self) -> RetrievalAndInferenceChain:
        return self._chain

    # ------------------------------------------------------------------ #
    # Готовность бэкенда
    # ------------------------------------------------------------------ #
    @staticmethod
    def _failure_of(future: Future) -> Optional[BaseException]:
        if future.cancelled():
            return RuntimeError("Language model backend initialization was cancelled")
        exc = future.exception()
        if exc is not None:
            return exc
        if not future.result():
            return RuntimeError("Language model backend reported it is not ready")
        return None

    def _log_initialization(self, future: Future) -> None:
        failure = self._failure_of(future)
        if failure is None:
            logger.info("Language model backend ready")
        else:
            logger.error("Language model backend failed to initialize: %s", failure)

    @property
    def readiness(self) -> Readiness:
        if not self._init_future.done():
            return Readiness.UNINITIALIZED
        return Readiness.READY if self._failure_of(self._init_future) is None else Readiness.FAILED

    @property
    def failure(self) -> Optional[BaseException]:
        """Причина неудачной инициализации (None, пока не завершилась или если успешна)."""
        if not self._init_future.done():
            return None
        return self._failure_of(self._init_future)

    def wait_until_ready(self, timeout: Optional[float] = None) -> Readiness:
        """Блокирует до завершения инициализации (или таймаута) и возвращает состояние."""
        wait_futures([self._init_future], timeout=timeout)
        return self.readiness

    def _ensure_not_failed(self) -> None:
        if self.readiness is Readiness.FAILED:
            raise PipelineNotReadyError("Language model backend failed to initialize") from self.failure

    def _ensure_ready(self) -> None:
        self._ensure_not_failed()
        if self.readiness is not Readiness.READY:
            raise PipelineNotReadyError("Language model backend is still initializing")

    # ------------------------------------------------------------------ #
    # Загрузка знаний
    # ------------------------------------------------------------------ #
    @staticmethod
    def _read_source(source: Source) -> str:
        if hasattr(source, "read"):
            return source.read()
        p = Path(source)
        if not p.is_file():
            raise FileNotFoundError(f"Asset not found: {p}")
        return p.read_text(encoding="utf-8")

    def _chunks_of(self, source: Source) -> list:
        self._ensure_not_failed()
        chunks = self._chunker.split(self._read_source(source))
        if not chunks:
            logger.info("No chunks produced from %s, nothing to record", source)
        return chunks

    def ingest(self, source: Source) -> int:
        """Читает источник, режет на чанки и синхронно записывает их в память.

        Возвращает число записанных чанков. Из работающего event loop используйте aingest().
        """
        chunks = self._chunks_of(source)
        if chunks:
            self.memorize(chunks)
        return len(chunks)

    async def aingest(self, source: Source) -> int:
        chunks = self._chunks_of(source)
        if chunks:
            await self.amemorize(chunks)
        return len(chunks)

    def memorize(self, facts: Sequence[str]) -> None:
        """Сохраняет готовые тексты в семантическую память, дожидаясь завершения записи."""
        asyncio.run(self.amemorize(facts))

    async def amemorize(self, facts: Sequence[str]) -> None:
        self._ensure_not_failed()
        await self._memory.record_batched_items(facts)

    # ------------------------------------------------------------------ #
    # Генерация
    # ------------------------------------------------------------------ #
    async def generate(self, prompt: str, callback: Optional[ProgressCallback] = None) -> str:
        """Отвечает на вопрос по сохранённым знаниям; возвращает текст финального ответа."""
        self._ensure_ready()
        request = RetrievalRequest(query=prompt, config=self._config.retrieval)
        response = await self._chain.invoke(request, callback)
        return response.text

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        client = getattr(self._memory.vector_store, "client", None)
        if client is not None and hasattr(client, "close"):
            client.close()

    def __enter__(self) -> "RagPipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
