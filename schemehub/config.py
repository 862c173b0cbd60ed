from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30  # 30 days

    # App Settings
    APP_NAME: str = "SchemeHub API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = ["*"]

    # External source (SQL Server system of record)
    MSSQL_SERVER: str = "localhost"
    MSSQL_PORT: int = 1433
    MSSQL_USER: str = ""
    MSSQL_PASSWORD: str = ""
    MSSQL_DATABASE: str = "BRLY_UAT"
    MSSQL_DRIVER: str = "ODBC Driver 18 for SQL Server"
    MSSQL_TRUST_SERVER_CERTIFICATE: bool = True
    MSSQL_CONNECT_TIMEOUT: int = 30  # seconds
    MSSQL_REQUEST_TIMEOUT: int = 30  # seconds
    MSSQL_PRODUCT_TABLE: str = "[BRLY_UAT].[dbo].[Ratan_Item]"
    MSSQL_CUSTOMER_TABLE: str = "[BRLY_UAT].[dbo].[Ratan_Customer]"

    # Master data sync
    SYNC_BATCH_SIZE: int = 100
    SYNC_SCHEDULER_ENABLED: bool = True
    SYNC_CRON_HOURS: str = "*/3"  # minute 0 of every third hour
    SCHEDULER_TIMEZONE: str = "UTC"

    # Scheme lifecycle
    SCHEME_DATE_OFFSET_DAYS: int = 1  # display compensation applied on create
    SCHEME_STRICT_TRANSITIONS: bool = False  # verify/reject only from Pending Verification

    # Export constants
    EXPORT_COMPANY_CODE: str = "brly"
    EXPORT_TAX_CHARGE_CODE: str = "DIS_PRI_VL"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def mssql_url(self) -> str:
        """SQLAlchemy URL for the external source (async ODBC driver)."""
        from sqlalchemy.engine import URL

        query = {"driver": self.MSSQL_DRIVER}
        if self.MSSQL_TRUST_SERVER_CERTIFICATE:
            query["TrustServerCertificate"] = "yes"
        return URL.create(
            "mssql+aioodbc",
            username=self.MSSQL_USER or None,
            password=self.MSSQL_PASSWORD or None,
            host=self.MSSQL_SERVER,
            port=self.MSSQL_PORT,
            database=self.MSSQL_DATABASE,
            query=query,
        ).render_as_string(hide_password=False)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
