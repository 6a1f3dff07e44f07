from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "soc-correlation-backend"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # HTTP server (uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    POSTGRES_HOST: str = "db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "soc_analysis"
    POSTGRES_USER: str = "soc_user"
    POSTGRES_PASSWORD: str = "soc_password"

    # Full SQLAlchemy URL, wins over the POSTGRES_* parts (e.g. sqlite for dev)
    DATABASE_URL_OVERRIDE: str | None = None

    # Loki log store
    LOKI_BASE_URL: str = "http://localhost:3100"
    LOKI_QUERY_LIMIT: int = 1000
    LOKI_TIMEOUT_SECONDS: float = 30.0
    LOKI_RETRY_ATTEMPTS: int = 3

    # Correlation windows (minutes)
    ANALYSIS_WINDOW_MINUTES: int = 15
    CORRELATION_WINDOW_MINUTES: int = 5

    # Correlations above this confidence are listed in the enrichment summary
    HIGH_CONFIDENCE_THRESHOLD: float = 0.7

    # Construct SQLAlchemy URL
    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
