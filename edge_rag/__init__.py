"""Ядро RAG-пайплайна.

Содержит:
- config: dataclass-конфиги эмбеддингов, векторного хранилища, LLM, чанкинга и извлечения
- chunker: разбиение текста по строкам-разделителям
- embeddings: локальная (HuggingFace) или удалённая (OpenAI-совместимая) модель эмбеддингов
- vectorstore: фабрика хранилища (Weaviate embedded/remote или в памяти)
- memory: семантическая память (запись пачкой и поиск с порогом)
- llm / backend: адаптер LlamaIndex CustomLLM и бэкенд генерации со стримингом
- prompt / chain: шаблон промпта и цепочка извлечение -> генерация
- pipeline: фасад с ingest/generate и состоянием готовности модели
"""

from .config import PipelineConfig
from .pipeline import PipelineNotReadyError, RagPipeline, Readiness

__all__ = ["PipelineConfig", "PipelineNotReadyError", "RagPipeline", "Readiness"]
