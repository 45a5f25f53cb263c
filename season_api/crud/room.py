from __future__ import annotations

from supabase import Client

TABLE = "user_rooms"


async def get_user_rooms(client: Client, user_id: str) -> list[dict]:
    response = (
        client.table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("room_name")
        .execute()
    )
    return response.data or []


async def user_owns_room(client: Client, user_id: str, room_id: str) -> bool:
    response = (
        client.table(TABLE)
        .select("id")
        .eq("user_id", user_id)
        .eq("room_id", room_id)
        .limit(1)
        .execute()
    )
    return bool(response.data)


async def find_owner_room(
    client: Client, user_id: str, room_id: str | None, room_name: str | None
) -> dict | None:
    """Match an owner's room by channel-manager room id, falling back to its name."""
    rooms = await get_user_rooms(client, user_id)
    if room_id:
        for room in rooms:
            if str(room.get("room_id")) == str(room_id):
                return room
    if room_name:
        wanted = room_name.strip().lower()
        for room in rooms:
            if (room.get("room_name") or "").strip().lower() == wanted:
                return room
    return None
