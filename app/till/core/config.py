from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "RETAIL-TILL"
    DATABASE_URL: str = "sqlite+pysqlite:///./till.db"
    CURRENCY: str = "LKR"
    INVOICE_NUMBER_PREFIX: str = "INV"
    LEDGER_BACKEND: str = "sql"  # sql | memory | remote
    LEDGER_API_BASE_URL: str = "http://localhost:5000/api"
    LEDGER_TIMEOUT_SECONDS: float = 10.0
    METRICS_ENABLED: bool = True
    DEFAULT_SHIFT_START: str = "08:00"
    DEFAULT_SHIFT_END: str = "20:00"


settings = Settings()
