import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    port: int
    database_url: str
    database_name: str
    recent_window: int
    log_level: str
    cors_origins: tuple[str, ...]
    pbkdf2_iterations: int


@lru_cache
def get_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", "*")
    recent_window = int(os.getenv("RECENT_WINDOW", 20))
    # a zero limit means "no limit" to MongoDB
    if recent_window < 1:
        raise ValueError(f"RECENT_WINDOW must be at least 1, got {recent_window}")
    return Settings(
        port=int(os.getenv("PORT", 8000)),
        database_url=os.getenv("DATABASE_URL", "mongodb://127.0.0.1:27017"),
        database_name=os.getenv("DATABASE_NAME", "ledger"),
        recent_window=recent_window,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        pbkdf2_iterations=int(os.getenv("PBKDF2_ITERATIONS", 200_000)),
    )
