from pydantic_settings import BaseSettings, SettingsConfigDict

from bankfeed.core.models import TieBreak


class Settings(BaseSettings):
    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Profile defaults
    DEFAULT_DATE_FORMAT: str = "YYYY-MM-DD"
    DEFAULT_AMOUNT_MINOR_FACTOR: int = 100

    # Parsing
    # Strict mode fails a whole file on its first malformed row
    STRICT_PARSING: bool = False
    MAX_WORKERS: int = 4

    # Dedupe
    SYNTHESIZED_ID_TIE_BREAK: TieBreak = TieBreak.LATEST

    model_config = SettingsConfigDict(
        env_prefix="BANKFEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
