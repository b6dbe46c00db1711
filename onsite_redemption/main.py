from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from onsite_redemption.config import Config
from onsite_redemption.database.connection import init_db
from onsite_redemption.errors import ErrorCode, InvalidRequestError, RedemptionError
from onsite_redemption.logging_utils import configure_logging
from onsite_redemption.routes import abstracts, certificates, scans, statistics

logger = logging.getLogger(__name__)

app = FastAPI(title="Onsite Resource Redemption")

app.include_router(scans.router)
app.include_router(statistics.router)
app.include_router(abstracts.router)
app.include_router(certificates.router)


@app.exception_handler(RedemptionError)
async def redemption_error_handler(request: Request, exc: RedemptionError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_payload()})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}" for error in exc.errors()
    )
    error = InvalidRequestError(problems or "Invalid request")
    return JSONResponse(status_code=error.status_code, content={"error": error.to_payload()})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": ErrorCode.INTERNAL.value, "message": "Internal server error"}},
    )


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.on_event("startup")
async def startup_event() -> None:
    configure_logging(Config.LOG_LEVEL)
    Config.init()
    init_db()


def run() -> None:
    uvicorn.run("onsite_redemption.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
