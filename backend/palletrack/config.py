from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "PalletTrack"
    environment: str = "development"
    debug: bool = False
    allowed_origins: str = "http://localhost:3000"
    port: int = 8080

    # Database
    database_url: str = "sqlite+aiosqlite:///./palletrack.db"
    database_url_sync: str = "sqlite:///./palletrack.db"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_echo: bool = False
    create_tables_on_startup: bool = True

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
