# proposal_engine/middleware.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from proposal_engine.config import get_settings

logger = logging.getLogger("middleware")

def _origins() -> list:
    raw = get_settings().cors_origins or "*"
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]

async def _unhandled(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"detail": "Internal server error"}, status_code=500)

def install_middlewares(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )
    app.add_exception_handler(Exception, _unhandled)
