"""Mapping of service errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from quote_engine.errors import QuoteEngineError

logger = logging.getLogger(__name__)


async def quote_engine_error_handler(request: Request, exc: QuoteEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder({"error": exc.to_dict()}))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QuoteEngineError, quote_engine_error_handler)
