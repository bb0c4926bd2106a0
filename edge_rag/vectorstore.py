#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Фабрики векторного хранилища: Weaviate (embedded/remote) или SimpleVectorStore в памяти."""

from __future__ import annotations

from urllib.parse import urlparse

import weaviate
from weaviate.classes.init import Auth
from llama_index.core.vector_stores import SimpleVectorStore
from llama_index.core.vector_stores.types import BasePydanticVectorStore
from llama_index.vector_stores.weaviate import WeaviateVectorStore

from .config import VectorStoreBackend, VectorStoreConfig


def make_weaviate_client(cfg: VectorStoreConfig) -> weaviate.WeaviateClient:
    """Создаёт клиент Weaviate в зависимости от конфигурации.

    - embedded: локальный встроенный сервер Weaviate (без внешних сервисов)
    - remote: подключение к удалённому Weaviate (Docker/K8s) по URL, опционально с API‑ключом
    """
    if cfg.use_embedded:
        return weaviate.connect_to_embedded()
    if not cfg.weaviate_url:
        raise RuntimeError("Remote Weaviate requested but no URL configured.")

    url = urlparse(cfg.weaviate_url)
    secure = url.scheme == "https"
    auth = Auth.api_key(cfg.weaviate_api_key) if cfg.weaviate_api_key else None
    return weaviate.connect_to_custom(
        http_host=url.hostname,
        http_port=url.port or (443 if secure else 80),
        http_secure=secure,
        grpc_host=url.hostname,
        grpc_port=cfg.grpc_port,
        grpc_secure=secure,
        auth_credentials=auth,
    )


def make_vector_store(cfg: VectorStoreConfig) -> BasePydanticVectorStore:
    if cfg.backend == VectorStoreBackend.MEMORY:
        return SimpleVectorStore()
    client = make_weaviate_client(cfg)
    return WeaviateVectorStore(weaviate_client=client, index_name=cfg.index_name)
