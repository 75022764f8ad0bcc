from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analytics_backend.config import settings
from analytics_backend.errors import AnalyticsError, InvalidInput, SchemaUnavailable
from analytics_backend.models.chat import ChatRequest, ChatResponse, ErrorResponse
from analytics_backend.services.calls import critical, describe
from analytics_backend.services.query_engine import QueryEngine, query_engine
from analytics_backend.utils.logger import configure_logging, logger


def get_query_engine() -> QueryEngine:
    return query_engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    # Missing credentials or dataset settings stop the server here
    engine = app.dependency_overrides.get(get_query_engine, get_query_engine)()
    engine.ensure_initialized()
    yield


app = FastAPI(title="Conversational Analytics API", default_response_class=JSONResponse, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidInput()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/api/healthz")
async def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/schema")
async def schema(engine: QueryEngine = Depends(get_query_engine)) -> Dict[str, Any]:
    provider = engine.schema_provider
    tables = await critical(provider.get_all_schemas(), SchemaUnavailable)
    return {"datasetId": provider.dataset_id, "tables": [t.to_dict() for t in tables]}


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(req: ChatRequest, engine: QueryEngine = Depends(get_query_engine)) -> ChatResponse:
    try:
        exchange = await engine.answer(req.message)
    except AnalyticsError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Chat endpoint error")
        raise AnalyticsError(details=describe(exc)) from exc
    return ChatResponse(**exchange.to_payload())


def run() -> None:
    import uvicorn

    uvicorn.run("analytics_backend.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
