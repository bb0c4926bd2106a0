#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import logging
from dataclasses import dataclass
from typing import Optional

from .backend import LanguageModelBackend
from .memory import SemanticTextMemory
from .prompt import PromptBuilder
from .types import LanguageModelResponse, ProgressCallback, RetrievalRequest, RetrievalResult

logger = logging.getLogger(__name__)

# Найденные фрагменты склеиваются в порядке ранжирования.
CONTEXT_SEPARATOR = "\n"


@dataclass(frozen=True)
class ChainConfig:
    language_model: LanguageModelBackend
    prompt_builder: PromptBuilder
    semantic_memory: SemanticTextMemory


class RetrievalAndInferenceChain:
    """Цепочка RAG: извлечение из семантической памяти, затем генерация.

    Ошибка извлечения прерывает цепочку до вызова модели; ошибки генерации
    отдаются вызывающему как есть. Повторов нет.
    """
    def __init__(self, config: ChainConfig) -> None:
        self._config = config

    @staticmethod
    def join_context(result: RetrievalResult) -> str:
        return CONTEXT_SEPARATOR.join(result.texts())

    async def invoke(self, request: RetrievalRequest, callback: Optional[ProgressCallback] = None) -> LanguageModelResponse:
        result = await self._config.semantic_memory.retrieve(request)
        context = self.join_context(result)
        prompt = self._config.prompt_builder.build(context, request.query)
        logger.debug("Prompt built from %d retrieved items (%d chars)", len(result), len(prompt))
        return await self._config.language_model.generate(prompt, callback)
