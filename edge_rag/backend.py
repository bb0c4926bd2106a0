#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import inspect
import logging
from typing import Optional

from llama_index.core.llms import LLM

from .types import LanguageModelResponse, ProgressCallback

logger = logging.getLogger(__name__)


async def _notify(callback: ProgressCallback, response: LanguageModelResponse) -> None:
    result = callback(response)
    if inspect.isawaitable(result):
        await result


class LanguageModelBackend:
    """Обёртка над LLM: прогрев модели и генерация с уведомлениями о прогрессе.

    - initialize(): блокирующий прогрев; вызывается пайплайном в отдельном потоке
    - generate(): без callback один запрос, с callback стриминг частичных ответов
    """
    def __init__(self, llm: LLM) -> None:
        self._llm = llm

    def initialize(self) -> bool:
        """Проверяет доступность модели. LLM без ping() считается готовой сразу."""
        ping = getattr(self._llm, "ping", None)
        if ping is None:
            return True
        return bool(ping())

    async def generate(self, prompt: str, progress_callback: Optional[ProgressCallback] = None) -> LanguageModelResponse:
        """Генерирует ответ на промпт.

        С callback: ноль или больше частичных ответов (done=False, только приращение текста),
        затем ровно один финальный (done=True, полный текст без крайних пробелов), он же возвращается.
        """
        if progress_callback is None:
            resp = await self._llm.acomplete(prompt)
            return LanguageModelResponse(text=resp.text.strip(), done=True)

        text = ""
        gen = await self._llm.astream_complete(prompt)
        async for chunk in gen:
            delta = chunk.delta if chunk.delta is not None else chunk.text[len(text):]
            text = chunk.text
            if delta:
                await _notify(progress_callback, LanguageModelResponse(text=delta, done=False))

        final = LanguageModelResponse(text=text.strip(), done=True)
        await _notify(progress_callback, final)
        logger.debug("Generated %d chars for a %d-char prompt", len(text), len(prompt))
        return final
