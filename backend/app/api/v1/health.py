from fastapi import APIRouter, Depends, Query

try:
    from ...core.config import settings  # type: ignore
    from ...core.services import Services, get_services  # type: ignore
    from ...schemas.common import LogLines, Success  # type: ignore
    from ...utils.log_buffer import activity_logs  # type: ignore
except Exception:  # pragma: no cover
    from core.config import settings  # type: ignore
    from core.services import Services, get_services  # type: ignore
    from schemas.common import LogLines, Success  # type: ignore
    from utils.log_buffer import activity_logs  # type: ignore

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/info")
def info(services: Services = Depends(get_services)):
    """Return application info: name, version and the Piped instance in use."""
    return {
        "name": settings.app_name,
        "version": settings.version,
        "selected_instance": services.prober.get_selected_instance(),
    }


@router.get("/logs", response_model=LogLines)
def recent_logs(count: int = Query(100, ge=1, le=5000)):
    """Most recent search/probe log lines, oldest first."""
    return LogLines(max_lines=activity_logs.max_lines, lines=activity_logs.get_lines(count))


@router.delete("/logs", response_model=Success)
def clear_logs():
    activity_logs.clear()
    return Success()
