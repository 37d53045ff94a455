from __future__ import annotations

from fastapi import APIRouter, Depends

try:
    from ...core.services import Services, get_services  # type: ignore
    from ...schemas.models import InstanceRead, InstanceReport  # type: ignore
except Exception:  # pragma: no cover
    from core.services import Services, get_services  # type: ignore
    from schemas.models import InstanceRead, InstanceReport  # type: ignore

router = APIRouter(prefix="/instances", tags=["instances"])


def _report(services: Services) -> InstanceReport:
    prober = services.prober
    return InstanceReport(
        selected=prober.get_selected_instance(),
        probed_at=prober.probed_at,
        instances=[
            InstanceRead(
                name=r.instance.name,
                api_url=r.instance.api_url,
                regions=sorted(r.instance.regions),
                mean_latency_ms=round(r.mean_latency * 1000, 1) if r.mean_latency is not None else None,
                samples=len(r.latencies),
            )
            for r in prober.last_results
        ],
    )


@router.get("", response_model=InstanceReport)
async def list_instances(services: Services = Depends(get_services)):
    """Candidates of the last probing round with their mean latency (null = excluded)."""
    return _report(services)


@router.post("/probe", response_model=InstanceReport)
async def probe_instances(services: Services = Depends(get_services)):
    """Run a probing round now and return its report."""
    await services.prober.select_best()
    return _report(services)
