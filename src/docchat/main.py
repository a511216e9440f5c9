import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from docchat.api.chat import router as chat_router
from docchat.api.documents import router as documents_router
from docchat.logging_config import configure_logging
from docchat.telemetry import emit_app_startup_event, emit_exception

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Document Chat API")
app.include_router(documents_router)
app.include_router(chat_router)


@app.on_event("startup")
async def _startup() -> None:
    emit_app_startup_event()


@app.exception_handler(Exception)
async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    emit_exception(module=__name__, error=exc, suggestion=f"{request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Something went wrong!", "message": str(exc)})


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "OK", "message": "Chat with PDF Documents is running"}
