from fastapi import FastAPI
from pricewatch.core.config import get_settings
from pricewatch.core.errors import install_error_handlers
from pricewatch.core.lifespan import lifespan
from pricewatch.api.v1.routers.health import router as health_router
from pricewatch.api.v1.routers.tracker import router as tracker_router
from pricewatch.api.v1.routers.refresh import router as refresh_router
from pricewatch.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
install_error_handlers(app)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV, e.g. "https://pricewatch.app,https://www.pricewatch.app"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or ["http://localhost:3000"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ------- Routes -------
app.include_router(health_router)
app.include_router(tracker_router, prefix=settings.api_prefix)    # track / list / alert / delete
app.include_router(refresh_router, prefix=settings.api_prefix)    # manual refresh run (operators)
