from __future__ import annotations

from supabase import Client


async def get_profile_by_id(client: Client, user_id: str) -> dict | None:
    response = client.table("profiles").select("*").eq("id", user_id).execute()
    if not response.data:
        return None
    return response.data[0]


def is_admin(profile: dict) -> bool:
    return profile.get("role") == "admin"


def can_manage_prices(profile: dict) -> bool:
    # Smart-pricing accounts have their prices managed by the concierge.
    return bool(profile.get("can_manage_prices"))
