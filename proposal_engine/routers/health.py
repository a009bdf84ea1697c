# proposal_engine/routers/health.py
from fastapi import APIRouter

from proposal_engine.config import get_settings

# Kubernetes-style liveness & readiness endpoints.
router = APIRouter(prefix="/health", tags=["health"])

@router.get("/live")
def live():
    """
    Liveness probe. Always 200 while the process is up.
    No external dependency checks here, otherwise an AI gateway or Supabase outage
    would get healthy pods restarted.
    """
    return {"status": "ok"}


@router.get("/ready")
def ready():
    """
    Readiness probe.
    The core (assembly, pricing, markup) needs nothing external, so the service is ready
    as soon as it starts; the flags tell operators which collaborators are configured.
    Nothing is called over the network.
    """
    s = get_settings()
    return {
        "status": "ok",
        "ai_gateway_configured": bool(s.ai_gateway_url and s.ai_api_key),
        "snapshot_store_configured": bool(s.supabase_url and (s.supabase_service_role_key or s.supabase_anon_key)),
    }
