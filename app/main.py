#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from io import StringIO
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, model_validator

from edge_rag.config import PipelineConfig
from edge_rag.pipeline import PipelineNotReadyError, RagPipeline, Readiness
from edge_rag.types import LanguageModelResponse

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Создаёт пайплайн один раз при старте и загружает asset_path, если он задан."""
    config = PipelineConfig.from_env()
    pipeline = RagPipeline(config)
    app.state.pipeline = pipeline
    try:
        if config.asset_path:
            n = await pipeline.aingest(config.asset_path)
            logger.info("Ingested %d chunks from %s", n, config.asset_path)
        yield
    finally:
        pipeline.close()


app = FastAPI(title="Edge RAG API (OpenAI-compatible)", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class IngestRequest(BaseModel):
    """Тело запроса на загрузку знаний: путь к текстовому файлу или сам текст."""
    path: Optional[str] = None
    text: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self) -> "IngestRequest":
        if (self.path is None) == (self.text is None):
            raise ValueError("Exactly one of 'path' or 'text' must be set")
        return self


class IngestResponse(BaseModel):
    """Ответ на загрузку: число записанных чанков и длительность."""
    chunks_recorded: int
    took_ms: int
    detail: str = "ok"


class GenerateRequest(BaseModel):
    """Вопрос к пайплайну; stream=true отдаёт ответ частями (text/plain)."""
    prompt: str
    stream: bool = False


class GenerateResponse(BaseModel):
    answer: str
    took_ms: int


def _pipeline(request: Request) -> RagPipeline:
    return request.app.state.pipeline


@app.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Health-check: состояние бэкенда модели и размер записанной памяти."""
    pipeline = _pipeline(request)
    failure = pipeline.failure
    return {
        "status": "ok",
        "backend": pipeline.readiness.value,
        "detail": str(failure) if failure is not None else None,
        "memory_items_recorded": pipeline.memory.recorded_count,
    }


@app.post("/ingest", response_model=IngestResponse)
async def ingest(req: IngestRequest, request: Request) -> IngestResponse:
    """Режет текст (или файл) на чанки и записывает их в семантическую память."""
    t0 = time.time()
    pipeline = _pipeline(request)
    try:
        if req.path is not None:
            n = await pipeline.aingest(req.path)
        else:
            n = await pipeline.aingest(StringIO(req.text))
    except PipelineNotReadyError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    took_ms = int((time.time() - t0) * 1000)
    return IngestResponse(chunks_recorded=n, took_ms=took_ms)


async def _stream_answer(pipeline: RagPipeline, prompt: str) -> AsyncIterator[str]:
    """Переводит callback прогресса в асинхронный поток приращений текста."""
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

    def on_progress(resp: LanguageModelResponse) -> None:
        if not resp.done:
            queue.put_nowait(resp.text)

    async def run() -> None:
        try:
            await pipeline.generate(prompt, on_progress)
        except Exception:
            # Заголовки 200 уже отправлены: клиент увидит только обрезанный ответ.
            logger.exception("Streaming generation failed for prompt of %d chars", len(prompt))
            raise
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run())
    try:
        while True:
            piece = await queue.get()
            if piece is None:
                break
            yield piece
        await task
    finally:
        if not task.done():
            task.cancel()


@app.post("/generate", response_model=GenerateResponse)
async def generate(req: GenerateRequest, request: Request):
    """Отвечает на вопрос по сохранённым знаниям (RAG)."""
    t0 = time.time()
    pipeline = _pipeline(request)
    if req.stream:
        if pipeline.readiness is not Readiness.READY:
            raise HTTPException(status_code=503, detail="Language model backend is not ready")
        return StreamingResponse(_stream_answer(pipeline, req.prompt), media_type="text/plain")
    try:
        answer = await pipeline.generate(req.prompt)
    except PipelineNotReadyError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    took_ms = int((time.time() - t0) * 1000)
    return GenerateResponse(answer=answer, took_ms=took_ms)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=False)
