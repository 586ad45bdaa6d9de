from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Redis holds the seat index only (identity -> channel it sits in).
    # An empty string keeps seats per process.
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_SEAT_TTL: int = 300  # seconds; a seat expires if heartbeats stop

    # Used to namespace Redis keys when several relays share one Redis.
    SERVER_DOMAIN: str = "localhost"

    # Channel sessions
    HISTORY_LIMIT: int = 100
    DISCONNECT_GRACE_SECONDS: float = 5.0
    DEFAULT_LANGUAGE: str = "en"
    DISCOVERY_SAMPLE_AVATARS: int = 4
    SEARCH_RESULT_LIMIT: int = 25

    # Group DMs
    GROUP_MAX_MEMBERS: int = 50

    # Authorization data — plain JSON files, reloadable at runtime
    BAN_LIST_PATH: str = "./bans.json"
    TOKEN_STORE_PATH: str = "./tokens.json"

    # Avatar headshots — set AVATAR_API_BASE to "" to skip lookups entirely
    AVATAR_API_BASE: str = "https://thumbnails.roblox.com/v1/users/avatar-headshot"
    AVATAR_LOOKUP_TIMEOUT: float = 3.0

    # Game metadata for the discovery list — empty strings disable each lookup
    GAME_THUMBNAIL_API: str = "https://thumbnails.roblox.com/v1/places/gameicons"
    GAME_UNIVERSE_API: str = "https://apis.roblox.com/universes/v1/places"
    GAME_INFO_API: str = "https://games.roblox.com/v1/games"
    GAME_LOOKUP_TIMEOUT: float = 5.0

    model_config = {"env_file": ".env"}


settings = Settings()
