# proposal_engine/deps.py
from functools import lru_cache
from supabase import create_client, Client
from proposal_engine.config import get_settings

@lru_cache()
def get_supabase() -> Client:
    s = get_settings()
    key = s.supabase_service_role_key or s.supabase_anon_key
    if not s.supabase_url or not key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) are required")
    return create_client(s.supabase_url, key)

def get_ai_client():
    from proposal_engine.services.ai_client import AIClient
    return AIClient()

def get_snapshot_repo():
    from proposal_engine.services.snapshot_repo import SnapshotRepository
    return SnapshotRepository()
