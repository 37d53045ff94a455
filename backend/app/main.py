from fastapi import FastAPI
import logging
import os
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import RedirectResponse
from logging.config import dictConfig

# Apply logging configuration as early as possible (module import time)
try:
    from .core.logging_config import get_uvicorn_log_config, resolve_level  # type: ignore
    dictConfig(get_uvicorn_log_config(resolve_level()))
except Exception:
    # Fallback to a simple timestamped format
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s", datefmt="%H:%M:%S")

# Support both execution modes:
# - "uvicorn backend.app.main:app" (package-relative imports)
# - "uvicorn main:app" with sys.path pointing to backend/app (flat imports)
try:
    from .api.v1.health import router as health_router  # type: ignore
    from .api.v1.instances import router as instances_router  # type: ignore
    from .api.v1.search import router as search_router  # type: ignore
    from .app_meta import __description__  # type: ignore
    from .core.config import settings  # type: ignore
    from .core.logging_config import resolve_level  # type: ignore
    from .core.services import build_services  # type: ignore
    from .utils.log_buffer import install_log_capture  # type: ignore
except Exception:  # pragma: no cover
    from api.v1.health import router as health_router  # type: ignore
    from api.v1.instances import router as instances_router  # type: ignore
    from api.v1.search import router as search_router  # type: ignore
    from app_meta import __description__  # type: ignore
    from core.config import settings  # type: ignore
    from core.logging_config import resolve_level  # type: ignore
    from core.services import build_services  # type: ignore
    from utils.log_buffer import install_log_capture  # type: ignore

logger = logging.getLogger("backend.app")

tags_metadata = [
    {"name": "health", "description": "Health checks, service info and recent activity logs."},
    {"name": "search", "description": "Aggregated Piped search, click weights and Spotify track search."},
    {"name": "instances", "description": "Piped mirror latency race and current selection."},
]

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description=__description__,
    openapi_tags=tags_metadata,
    # Serve docs under /api/* to match API prefix
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    contact={"name": settings.app_name},
    license_info={
        "name": "MIT",
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)


def _flag(name: str) -> bool:
    return os.environ.get(name, "0") in {"1", "true", "TRUE", "True"}


@app.on_event("startup")
async def on_startup():
    level = resolve_level()
    logging.getLogger("backend").setLevel(level)
    logging.getLogger("backend.app").setLevel(level)
    install_log_capture(["backend.app"], level=level)

    # Tests may install their own wiring (mock transports, temp files) before startup
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    services = app.state.services

    logger.info(
        "Stores loaded cache=%s (%d entries) weights=%s (%d queries)",
        services.search_cache.path, len(services.search_cache),
        services.weights.path, len(services.weights),
    )

    if _flag("DISABLE_INSTANCE_PROBE"):
        logger.info("Instance probing disabled; selected instance stays %s", services.prober.get_selected_instance())
        return
    await services.prober.select_best()
    await services.probe_worker.start()


@app.on_event("shutdown")
async def on_shutdown():
    services = getattr(app.state, "services", None)
    if services is None:
        return
    try:
        await services.aclose()
    finally:
        app.state.services = None


# Routes
app.include_router(health_router, prefix="/api/v1")
app.include_router(search_router, prefix="/api/v1")
app.include_router(instances_router, prefix="/api/v1")


@app.get("/api")
def api_root():
    return {"name": settings.app_name, "version": settings.version}


# Convenience redirects for default FastAPI docs paths
@app.get("/docs", include_in_schema=False)
async def docs_redirect():
    return RedirectResponse(url="/api/docs")


@app.get("/redoc", include_in_schema=False)
async def redoc_redirect():
    return RedirectResponse(url="/api/redoc")
