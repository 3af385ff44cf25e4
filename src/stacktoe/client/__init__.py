"""Client-side pieces: reconnecting game connection and local persistence."""

from .storage import (  # noqa: F401
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
    RoomInfo,
    clear_ai_game_state,
    clear_local_game_state,
    clear_online_room_info,
    load_ai_game_state,
    load_local_game_state,
    load_online_room_info,
    save_ai_game_state,
    save_local_game_state,
    save_online_room_info,
)
from .sync import AiohttpTransport, ClientState, GameClient, Transport  # noqa: F401
