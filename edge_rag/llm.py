#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from typing import Any, Dict, List, Optional

from llama_index.core.bridge.pydantic import PrivateAttr
from llama_index.core.llms import (
    CompletionResponse,
    CompletionResponseAsyncGen,
    CompletionResponseGen,
    CustomLLM,
    LLMMetadata,
)
from openai import AsyncOpenAI, OpenAI

from .config import LLMConfig


class OpenAIChatLLM(CustomLLM):
    """Адаптер LlamaIndex CustomLLM для OpenAI-совместимого Chat Completions API.

    Оборачивает клиентов OpenAI (sync и async), чтобы использовать сервер модели
    (vLLM, llama.cpp и т.п.) внутри LlamaIndex как обычную LLM.
    Стриминг отдаёт нарастающий text и приращение delta.
    """
    _client: OpenAI = PrivateAttr()
    _base_url: str = PrivateAttr()
    _api_key: str = PrivateAttr()
    _model: str = PrivateAttr()
    _temperature: float = PrivateAttr()
    _top_p: float = PrivateAttr()
    _top_k: int = PrivateAttr()
    _max_tokens: int = PrivateAttr()
    _system_prompt: Optional[str] = PrivateAttr()
    _enable_thinking: bool = PrivateAttr()
    _timeout: float = PrivateAttr()

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model_name: str,
        temperature: float = 1.0,
        top_p: float = 0.95,
        top_k: int = 64,
        max_tokens: int = 1024,
        system_prompt: Optional[str] = None,
        enable_thinking: bool = False,
        timeout: float = 120.0,
    ) -> None:
        super().__init__()
        self._base_url = base_url
        self._api_key = api_key
        self._client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
        self._model = model_name
        self._temperature = float(temperature)
        self._top_p = float(top_p)
        self._top_k = int(top_k)
        self._max_tokens = int(max_tokens)
        self._system_prompt = system_prompt
        self._enable_thinking = bool(enable_thinking)
        self._timeout = float(timeout)

    @classmethod
    def from_config(cls, cfg: LLMConfig) -> "OpenAIChatLLM":
        return cls(
            base_url=cfg.base_url,
            api_key=cfg.api_key,
            model_name=cfg.model_name,
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            top_k=cfg.top_k,
            max_tokens=cfg.max_tokens,
            system_prompt=cfg.system_prompt,
            enable_thinking=cfg.enable_thinking,
            timeout=cfg.request_timeout,
        )

    @property
    def metadata(self) -> LLMMetadata:
        return LLMMetadata(
            model_name=f"openai-compat::{self._model}",
            num_output=self._max_tokens,
        )

    def _make_messages(self, user_prompt: str) -> List[Dict[str, str]]:
        """Формирует список сообщений (system, если задан, + user) для Chat API."""
        messages = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def _request_kwargs(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": self._make_messages(prompt),
            "extra_body": {"top_k": self._top_k, "enable_thinking": self._enable_thinking},
            "temperature": self._temperature,
            "top_p": self._top_p,
            "max_tokens": self._max_tokens,
        }

    @staticmethod
    def _delta_of(event: Any) -> str:
        if not event.choices:
            return ""
        return event.choices[0].delta.content or ""

    def ping(self) -> bool:
        """Проверяет, что сервер доступен и обслуживает нужную модель."""
        served = [m.id for m in self._client.models.list()]
        if self._model not in served:
            raise RuntimeError(f"Model {self._model!r} is not served at {self._base_url} (available: {served})")
        return True

    def complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponse:
        """Синхронное получение единого текста ответа для переданного промпта."""
        resp = self._client.chat.completions.create(**self._request_kwargs(prompt))
        text = (resp.choices[0].message.content or "").strip()
        return CompletionResponse(text=text)

    def stream_complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponseGen:
        """Потоковая генерация: возвращает нарастающий ответ частями."""
        stream = self._client.chat.completions.create(stream=True, **self._request_kwargs(prompt))
        buffer = []
        for event in stream:
            delta = self._delta_of(event)
            if delta:
                buffer.append(delta)
                yield CompletionResponse(text="".join(buffer), delta=delta)

    async def acomplete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponse:
        async with AsyncOpenAI(base_url=self._base_url, api_key=self._api_key, timeout=self._timeout) as client:
            resp = await client.chat.completions.create(**self._request_kwargs(prompt))
        text = (resp.choices[0].message.content or "").strip()
        return CompletionResponse(text=text)

    async def astream_complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponseAsyncGen:
        """Асинхронный стриминг; клиент создаётся на каждый вызов в текущем event loop."""
        async def gen() -> CompletionResponseAsyncGen:
            async with AsyncOpenAI(base_url=self._base_url, api_key=self._api_key, timeout=self._timeout) as client:
                stream = await client.chat.completions.create(stream=True, **self._request_kwargs(prompt))
                buffer = []
                async for event in stream:
                    delta = self._delta_of(event)
                    if delta:
                        buffer.append(delta)
                        yield CompletionResponse(text="".join(buffer), delta=delta)

        return gen()
