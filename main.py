from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
from core.exceptions import LanpAppException
from api import lanpas, nominations, notifications, users, catalog

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="LanpApp API",
    description="LAN party organizer: lifecycle, game voting and punishment nominations",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router)
app.include_router(catalog.router)
app.include_router(lanpas.router)
app.include_router(nominations.router)
app.include_router(notifications.router)


def error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    """Uniform error envelope: {error, message, statusCode, details?}"""
    content = {"error": error, "message": message, "statusCode": status_code}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(LanpAppException)
async def lanpapp_exception_handler(request: Request, exc: LanpAppException):
    logger.warning(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.error, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return error_response(400, "Validation Error", "Invalid request data", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        message = "An unexpected error occurred" if settings.is_production else str(exc.detail)
        return error_response(exc.status_code, "Internal Server Error", message)
    return error_response(exc.status_code, "Error", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {type(exc).__name__}: {exc}", exc_info=True)
    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return error_response(500, "Internal Server Error", message)


@app.get("/")
def root():
    return {"message": "LanpApp API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
