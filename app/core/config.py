from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Document store (MongoDB)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "hojattop"
    TOILETS_COLLECTION: str = "toilets"
    REVIEWS_COLLECTION: str = "reviews"
    USERS_COLLECTION: str = "users"

    # Local key-value cache (Redis)
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_NAMESPACE: str = "device"
    CACHE_TTL_SECONDS: int = 3600
    CACHE_VERSION: str = "1.0"

    # Geo defaults: Tashkent centre
    DEFAULT_LATITUDE: float = 41.2995
    DEFAULT_LONGITUDE: float = 69.2401
    DEFAULT_SEARCH_RADIUS_KM: float = 5.0
    DEFAULT_MAP_RADIUS_KM: float = 2.0

    # Reviews
    RECENT_REVIEWS_LIMIT: int = 10


settings = Settings()
