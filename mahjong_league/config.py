"""Service configuration via environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "MAHJONG_"}

    database_url: str = "sqlite:///./mahjong.db"
    log_dir: str | None = None
    log_level: str = "INFO"
    # SQLAlchemy statement logging is noisy at INFO
    sql_log_level: str = "WARNING"
    # newest games per player and game type kept as detail rows
    rollup_keep: int = Field(30, ge=1)


settings = Settings()
