from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Calendar month (1-12) in which every academic year starts
    academic_year_start_month: int = Field(4, alias="ACADEMIC_YEAR_START_MONTH", ge=1, le=12)

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    import_max_file_mb: int = Field(50, alias="IMPORT_MAX_FILE_MB")
    import_header_rows: int = Field(3, alias="IMPORT_HEADER_ROWS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
