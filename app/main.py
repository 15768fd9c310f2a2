from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import settings
from app.core.errors import ReservationAPIError
from app.api import reservations
from app.api.middleware import (
    BodySizeLimitMiddleware,
    add_security_headers,
    catch_unhandled_errors,
    enforce_request_timeout,
)
from app.core.logger import setup_logging, logger
from app.models.reservation_models import HealthResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone

setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENVIRONMENT})")
    if not settings.has_store_credentials:
        logger.warning("⚠️ SUPABASE_URL / SUPABASE_KEY not set, database calls will fail")
    yield
    # Shutdown
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

def error_body(message: str, details: str = None) -> dict:
    body = {"success": False, "error": message}
    if details and settings.is_development:
        body["details"] = details
    return body

@app.exception_handler(ReservationAPIError)
async def reservation_error_handler(request: Request, exc: ReservationAPIError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} -> {exc.status_code} {exc.kind.value}: {exc.details or exc.message}")
    else:
        logger.info(f"↩️ {request.method} {request.url.path} -> {exc.status_code} {exc.kind.value}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"↩️ {request.method} {request.url.path} -> 400 malformed request")
    return JSONResponse(status_code=400, content=error_body("Malformed request", str(exc.errors())))

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.info(f"↩️ {request.method} {request.url.path} -> {exc.status_code}")
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)), headers=getattr(exc, "headers", None))

# Backstop for errors raised outside catch_unhandled_errors
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"🔥 UNHANDLED ERROR: {str(exc)}", exc_info=True)
    return JSONResponse(status_code=500, content=error_body("An unexpected error occurred"))

# Last registered runs first
app.middleware("http")(catch_unhandled_errors)
app.middleware("http")(add_security_headers)
app.middleware("http")(enforce_request_timeout)
app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)

# Include routers
app.include_router(reservations.router, prefix=settings.API_PREFIX, tags=["Reservations"])

@app.get(f"{settings.API_PREFIX}/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(timestamp=datetime.now(timezone.utc))

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.is_development)
