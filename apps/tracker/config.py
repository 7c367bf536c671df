from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Pydantic's BaseSettings reads from environment variables and the .env
    file. This is the single source of truth for all config.
    """

    # App
    app_name: str = "Deploy Tracker API"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS - which frontend URLs can call this API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Worker
    phase_delay_seconds: float = 1.0            # Pause between deployment phases
    success_rate: float = 0.9                   # Placeholder outcome until real health checks exist

    # Events
    event_bus_backend: str = "memory"           # "memory" | "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Retention (0 = keep history forever)
    retention_hours: int = 0
    retention_check_minutes: int = 60

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,      # REDIS_URL and redis_url both work
    }


# Singleton instance - import this wherever you need settings
settings = Settings()
