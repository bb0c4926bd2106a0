#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from typing import Any, List

from llama_index.core.bridge.pydantic import PrivateAttr
from llama_index.core.embeddings import BaseEmbedding
from llama_index.embeddings.huggingface import HuggingFaceEmbedding
from openai import AsyncOpenAI, OpenAI

from .config import EmbeddingConfig, EmbeddingMode


class OpenAICompatEmbedding(BaseEmbedding):
    """Адаптер LlamaIndex BaseEmbedding для OpenAI-совместимого /embeddings API.

    Используется в режиме remote: запросы и документы векторизуются одной и той же моделью.
    """
    api_base: str
    _client: OpenAI = PrivateAttr()
    _api_key: str = PrivateAttr()

    def __init__(self, model_name: str, api_base: str, api_key: str, embed_batch_size: int = 32, **kwargs: Any) -> None:
        super().__init__(model_name=model_name, api_base=api_base, embed_batch_size=embed_batch_size, **kwargs)
        self._client = OpenAI(base_url=api_base, api_key=api_key)
        self._api_key = api_key

    @classmethod
    def class_name(cls) -> str:
        return "OpenAICompatEmbedding"

    def _get_query_embedding(self, query: str) -> List[float]:
        return self._get_text_embeddings([query])[0]

    async def _aget_query_embedding(self, query: str) -> List[float]:
        return (await self._aget_text_embeddings([query]))[0]

    def _get_text_embedding(self, text: str) -> List[float]:
        return self._get_text_embeddings([text])[0]

    async def _aget_text_embedding(self, text: str) -> List[float]:
        return (await self._aget_text_embeddings([text]))[0]

    def _get_text_embeddings(self, texts: List[str]) -> List[List[float]]:
        resp = self._client.embeddings.create(model=self.model_name, input=texts)
        return [item.embedding for item in resp.data]

    async def _aget_text_embeddings(self, texts: List[str]) -> List[List[float]]:
        # Клиент на каждый вызов: пул соединений httpx привязан к event loop.
        async with AsyncOpenAI(base_url=self.api_base, api_key=self._api_key) as client:
            resp = await client.embeddings.create(model=self.model_name, input=texts)
        return [item.embedding for item in resp.data]


def make_embed_model(cfg: EmbeddingConfig) -> BaseEmbedding:
    """Создаёт модель эмбеддингов согласно режиму из конфигурации.

    - local: HuggingFaceEmbedding; при use_gpu устройство выбирается автоматически (cuda, если есть)
    - remote: OpenAICompatEmbedding, требует API-ключ
    """
    if cfg.mode == EmbeddingMode.LOCAL:
        return HuggingFaceEmbedding(
            model_name=cfg.model_path,
            device=None if cfg.use_gpu else "cpu",
            embed_batch_size=cfg.embed_batch_size,
        )
    if not cfg.remote_api_key:
        raise RuntimeError("Remote embeddings requested but no API key configured.")
    return OpenAICompatEmbedding(
        model_name=cfg.remote_model,
        api_base=cfg.remote_base_url,
        api_key=cfg.remote_api_key,
        embed_batch_size=cfg.embed_batch_size,
    )
