"""
Affirmation Audio API - Speech & Backing Track Mixing Service

Handles:
- Affirmation Mixing (TTS speech looped over a backing track)
- Background TTS Jobs & Status Polling
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from affirm_audio.config import settings
from affirm_audio.database import create_tables
from affirm_audio.errors import MixError, ValidationError
from affirm_audio.routes import audio_routes

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    create_tables()
    yield


app = FastAPI(
    title="Affirmation Audio API",
    version="1.0.0",
    description="Affirmation speech synthesis and backing track mixing service",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MixError)
async def mix_error_handler(request: Request, exc: MixError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.details)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.details)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error, "details": exc.details})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    logger.warning("%s %s rejected: %s", request.method, request.url.path, "; ".join(problems))
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"error": ValidationError.error, "details": "; ".join(problems)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s crashed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": MixError.error, "details": str(exc)})


# Include routers
app.include_router(audio_routes.router, prefix="/api", tags=["Audio"])

@app.get("/")
def root():
    return {
        "service": "affirm-audio-api",
        "version": "1.0.0",
        "description": "Affirmation speech synthesis and backing track mixing service"
    }

@app.get("/health")
def health():
    return {"status": "healthy", "service": "affirm-audio-api"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
