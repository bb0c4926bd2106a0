#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Типы данных пайплайна: элементы памяти, запросы извлечения и ответы модели."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple, Union

if TYPE_CHECKING:
    from .config import RetrievalConfig


class TaskType(str, Enum):
    UNSPECIFIED = "unspecified"
    RETRIEVAL_QUERY = "retrieval_query"
    RETRIEVAL_DOCUMENT = "retrieval_document"
    SEMANTIC_SIMILARITY = "semantic_similarity"
    CLASSIFICATION = "classification"
    CLUSTERING = "clustering"
    QUESTION_ANSWERING = "question_answering"
    FACT_VERIFICATION = "fact_verification"


@dataclass(frozen=True)
class MemoryItem:
    """Единица знания в семантической памяти."""

    text: str
    embedding: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class RetrievalRequest:
    """Запрос к памяти: текст вопроса и параметры извлечения."""

    query: str
    config: "RetrievalConfig"


@dataclass(frozen=True)
class RetrievedEntity:
    item: MemoryItem
    score: float


@dataclass(frozen=True)
class RetrievalResult:
    """Найденные элементы, упорядоченные по убыванию сходства."""

    entities: List[RetrievedEntity] = field(default_factory=list)

    def texts(self) -> List[str]:
        return [e.item.text for e in self.entities]

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class LanguageModelResponse:
    """Ответ модели.

    done=False: частичный результат стриминга, text содержит только приращение.
    done=True: финальный ответ, text содержит полный текст.
    """

    text: str
    done: bool = True


ProgressCallback = Callable[[LanguageModelResponse], Union[None, Awaitable[None]]]
