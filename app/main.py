"""FastAPI application entry point."""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.errors import ErrorCode, error

app = FastAPI(
    title="Muse AI Orchestration Core",
    description="Persona-aware artwork analysis over ChatGPT / Gemini with single-hop fallback",
    version="0.1.0",
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are INVALID_INPUT."""
    err = error(ErrorCode.INVALID_INPUT, "Malformed request", errors=jsonable_encoder(exc.errors()))
    return JSONResponse(content={"detail": err.model_dump(mode="json")}, status_code=400)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


# Include v1 API router
app.include_router(api_router, prefix="/v1", tags=["v1"])
