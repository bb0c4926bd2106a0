#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .types import TaskType


DEFAULT_PROMPT_TEMPLATE = (
    "You are an assistant for question-answering tasks. "
    "Here are the things I want to remember: {0} "
    "Use the things I want to remember, answer the following question the user has: {1}"
)


class EmbeddingMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


# Размерности моделей по умолчанию: BAAI/bge-small-en-v1.5 и text-embedding-004.
DEFAULT_EMBED_DIMS = {EmbeddingMode.LOCAL: 384, EmbeddingMode.REMOTE: 768}


class VectorStoreBackend(str, Enum):
    WEAVIATE = "weaviate"
    MEMORY = "memory"


def _clean_env(name: str, default: str = "") -> str:
    value = os.getenv(name, default)
    return value.strip().strip('"').strip("'")


def _env_opt(name: str) -> Optional[str]:
    value = _clean_env(name)
    return value or None


def _env_bool(name: str, default: bool) -> bool:
    value = _clean_env(name)
    if not value:
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class EmbeddingConfig:
    """Параметры модели эмбеддингов.

    - mode: local (HuggingFace на этой машине) или remote (OpenAI-совместимый /embeddings)
    - model_path: имя или путь к локальной модели (токенизатор берётся из той же директории)
    - use_gpu: считать ли эмбеддинги на GPU
    - embed_dim: фиксированная размерность векторного хранилища; если не задана,
      берётся по режиму (384 для bge-small, 768 для text-embedding-004)
    - remote_*: модель, URL и ключ удалённого сервиса
    """
    mode: EmbeddingMode = EmbeddingMode.LOCAL
    model_path: str = "BAAI/bge-small-en-v1.5"
    use_gpu: bool = True
    embed_batch_size: int = 32
    embed_dim: Optional[int] = None
    remote_model: str = "text-embedding-004"
    remote_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    remote_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if self.embed_dim is None:
            self.embed_dim = DEFAULT_EMBED_DIMS[self.mode]


@dataclass
class VectorStoreConfig:
    """Параметры векторного хранилища.

    - backend: weaviate (персистентный) или memory (SimpleVectorStore в памяти процесса)
    - index_name: имя коллекции в Weaviate
    - use_embedded: использовать ли встроенный (embedded) Weaviate
    - weaviate_url / weaviate_api_key / grpc_port: удалённый Weaviate
    """
    backend: VectorStoreBackend = VectorStoreBackend.WEAVIATE
    index_name: str = "EdgeRagMemory"
    use_embedded: bool = True
    weaviate_url: Optional[str] = None
    weaviate_api_key: Optional[str] = None
    grpc_port: int = 50051


@dataclass
class LLMConfig:
    """Параметры языковой модели (OpenAI-совместимый сервер, например vLLM).

    - model_name: имя модели на сервере (для vLLM это путь к весам)
    - temperature, top_p, top_k, max_tokens: параметры генерации
    """
    base_url: str = "http://localhost:8080/v1"
    api_key: str = "test"
    model_name: str = "/data/local/tmp/gemma-3n-E4B-it-int4"
    temperature: float = 1.0
    top_p: float = 0.95
    top_k: int = 64
    max_tokens: int = 1024
    system_prompt: Optional[str] = None
    enable_thinking: bool = False
    request_timeout: float = 120.0


@dataclass
class ChunkingConfig:
    """Параметры разбиения текста: строка, начинающаяся с separator, открывает новый чанк."""
    separator: str = "<chunk_splitter>"


@dataclass(frozen=True)
class RetrievalConfig:
    """Параметры извлечения.

    - top_k: сколько фрагментов достать из памяти
    - min_similarity: порог сходства (включительно)
    - task_type: подсказка о назначении запроса
    """
    top_k: int = 3
    min_similarity: float = 0.0
    task_type: TaskType = TaskType.QUESTION_ANSWERING


@dataclass
class PipelineConfig:
    """Полная конфигурация пайплайна.

    prompt_template содержит ровно два позиционных слота: {0} контекст, {1} вопрос.
    asset_path: текстовый файл, который сервис загружает в память при старте.
    """
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    asset_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Собирает конфиг из переменных окружения EDGE_RAG_*; отсутствующие берутся по умолчанию."""
        emb = EmbeddingConfig()
        embed_dim = _env_opt("EDGE_RAG_EMBED_DIM")
        emb = EmbeddingConfig(
            mode=EmbeddingMode(_clean_env("EDGE_RAG_EMBEDDING_MODE", emb.mode.value).lower()),
            model_path=_clean_env("EDGE_RAG_EMBEDDING_MODEL_PATH", emb.model_path),
            use_gpu=_env_bool("EDGE_RAG_EMBEDDING_USE_GPU", emb.use_gpu),
            embed_batch_size=int(_clean_env("EDGE_RAG_EMBED_BATCH_SIZE", str(emb.embed_batch_size))),
            embed_dim=int(embed_dim) if embed_dim else None,
            remote_model=_clean_env("EDGE_RAG_REMOTE_EMBEDDING_MODEL", emb.remote_model),
            remote_base_url=_clean_env("EDGE_RAG_REMOTE_EMBEDDING_URL", emb.remote_base_url),
            remote_api_key=_env_opt("EDGE_RAG_REMOTE_EMBEDDING_API_KEY"),
        )

        vs = VectorStoreConfig()
        weaviate_url = _env_opt("EDGE_RAG_WEAVIATE_URL")
        vs = VectorStoreConfig(
            backend=VectorStoreBackend(_clean_env("EDGE_RAG_VECTOR_STORE", vs.backend.value).lower()),
            index_name=_clean_env("EDGE_RAG_INDEX_NAME", vs.index_name),
            use_embedded=(weaviate_url is None),
            weaviate_url=weaviate_url,
            weaviate_api_key=_env_opt("EDGE_RAG_WEAVIATE_API_KEY"),
            grpc_port=int(_clean_env("EDGE_RAG_WEAVIATE_GRPC_PORT", str(vs.grpc_port))),
        )

        llm = LLMConfig()
        llm = LLMConfig(
            base_url=_clean_env("EDGE_RAG_LLM_BASE_URL", llm.base_url),
            api_key=_clean_env("EDGE_RAG_LLM_API_KEY", llm.api_key),
            model_name=_clean_env("EDGE_RAG_LLM_MODEL", llm.model_name),
            temperature=float(_clean_env("EDGE_RAG_LLM_TEMPERATURE", str(llm.temperature))),
            top_p=float(_clean_env("EDGE_RAG_LLM_TOP_P", str(llm.top_p))),
            top_k=int(_clean_env("EDGE_RAG_LLM_TOP_K", str(llm.top_k))),
            max_tokens=int(_clean_env("EDGE_RAG_LLM_MAX_TOKENS", str(llm.max_tokens))),
            system_prompt=_env_opt("EDGE_RAG_LLM_SYSTEM_PROMPT"),
            enable_thinking=_env_bool("EDGE_RAG_LLM_ENABLE_THINKING", llm.enable_thinking),
            request_timeout=float(_clean_env("EDGE_RAG_LLM_TIMEOUT", str(llm.request_timeout))),
        )

        ret = RetrievalConfig()
        ret = RetrievalConfig(
            top_k=int(_clean_env("EDGE_RAG_RETRIEVAL_TOP_K", str(ret.top_k))),
            min_similarity=float(_clean_env("EDGE_RAG_MIN_SIMILARITY", str(ret.min_similarity))),
            task_type=TaskType(_clean_env("EDGE_RAG_TASK_TYPE", ret.task_type.value).lower()),
        )

        return cls(
            embedding=emb,
            vector_store=vs,
            llm=llm,
            chunking=ChunkingConfig(separator=_clean_env("EDGE_RAG_CHUNK_SEPARATOR", ChunkingConfig.separator)),
            retrieval=ret,
            prompt_template=os.getenv("EDGE_RAG_PROMPT_TEMPLATE") or DEFAULT_PROMPT_TEMPLATE,
            asset_path=_env_opt("EDGE_RAG_ASSET_PATH"),
        )
