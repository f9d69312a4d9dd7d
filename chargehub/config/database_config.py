# chargehub/config/database_config.py
from pydantic_settings import BaseSettings
from typing import Optional


class DatabaseSettings(BaseSettings):
    """Data store configuration settings."""

    database_path: str = "chargehub.db"

    # Defaults to the schema.sql shipped next to chargehub/db/database.py
    schema_path: Optional[str] = None

    class Config:
        env_file = ".env"
        env_prefix = "DB_"
        extra = "ignore"


# Global database settings instance
database_settings = DatabaseSettings()
