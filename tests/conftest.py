"""Общие заглушки для тестов: детерминированные эмбеддинги и LLM без сети."""

import threading
from typing import Any, List

import pytest
from llama_index.core.bridge.pydantic import Field, PrivateAttr
from llama_index.core.embeddings import BaseEmbedding
from llama_index.core.llms import (
    CompletionResponse,
    CompletionResponseGen,
    CustomLLM,
    LLMMetadata,
)

VOCABULARY = ["cat", "dog", "fish", "bird"]
KEYWORD_DIM = len(VOCABULARY) + 1


class KeywordEmbedding(BaseEmbedding):
    """По одной оси на ключевое слово плюс небольшая общая компонента (без нулевых векторов)."""

    @classmethod
    def class_name(cls) -> str:
        return "KeywordEmbedding"

    def _vector(self, text: str) -> List[float]:
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in VOCABULARY] + [0.01]

    def _get_query_embedding(self, query: str) -> List[float]:
        return self._vector(query)

    async def _aget_query_embedding(self, query: str) -> List[float]:
        return self._vector(query)

    def _get_text_embedding(self, text: str) -> List[float]:
        return self._vector(text)


class ExplodingEmbedding(KeywordEmbedding):
    def _get_text_embedding(self, text: str) -> List[float]:
        raise AssertionError("embedding must not be called")

    async def _aget_query_embedding(self, query: str) -> List[float]:
        raise AssertionError("embedding must not be called")


class ScriptedLLM(CustomLLM):
    """LLM, отвечающая заранее заданным текстом; стриминг по словам."""

    answer: str = "Cats are mammals with fur."
    prompts: List[str] = Field(default_factory=list)

    @property
    def metadata(self) -> LLMMetadata:
        return LLMMetadata(model_name="scripted")

    def complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponse:
        self.prompts.append(prompt)
        return CompletionResponse(text=self.answer)

    def stream_complete(self, prompt: str, formatted: bool = False, **kwargs: Any) -> CompletionResponseGen:
        self.prompts.append(prompt)

        def gen() -> CompletionResponseGen:
            text = ""
            for word in self.answer.split(" "):
                delta = word if not text else " " + word
                text += delta
                yield CompletionResponse(text=text, delta=delta)

        return gen()


class FailingLLM(ScriptedLLM):
    def ping(self) -> bool:
        raise ConnectionError("model server is down")


class NotServingLLM(ScriptedLLM):
    def ping(self) -> bool:
        return False


class GatedLLM(ScriptedLLM):
    """ping() ждёт, пока тест не откроет gate."""

    _gate: threading.Event = PrivateAttr(default_factory=threading.Event)

    @property
    def gate(self) -> threading.Event:
        return self._gate

    def ping(self) -> bool:
        return self._gate.wait(timeout=10)


@pytest.fixture
def keyword_embedding() -> KeywordEmbedding:
    return KeywordEmbedding()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()
