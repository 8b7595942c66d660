from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import get_settings
from .routers import availability, plans, bookings, payments, notifications, websocket
from .services.errors import BookingError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging

settings = get_settings()

# Configurar logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Configurar rate limiting
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title=settings.app_name)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def _cors_options(env: str, frontend_url: str) -> dict:
    """En dev se admite cualquier puerto local; fuera de dev solo el frontend configurado"""
    if env == "dev":
        return {
            "allow_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
            "allow_origin_regex": r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            "allow_headers": ["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
        }
    return {
        "allow_origins": [frontend_url] if frontend_url else [],
        "allow_origin_regex": None,
        "allow_headers": ["Authorization", "Content-Type", "Accept"],
    }


app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    expose_headers=["Content-Type"],
    **_cors_options(settings.env, settings.frontend_base_url),
)

@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.env, "timezone": settings.timezone}

# Routers
app.include_router(availability.router, prefix="/availability", tags=["availability"])
app.include_router(plans.router, prefix="/plans", tags=["plans"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(payments.router, prefix="/payments", tags=["payments"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(websocket.router, tags=["websocket"])
