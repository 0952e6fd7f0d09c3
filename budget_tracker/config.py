from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "BT_", "env_file": ".env", "env_file_encoding": "utf-8"}

    jwt_secret: str = Field(min_length=32)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    db_path: str = Field(default="budget_tracker.db")
    cors_origins: str = Field(default="http://localhost:3000")

    ledger_query_timeout_seconds: float = Field(default=5.0, gt=0)

    # Applied when a budget is created without explicit thresholds
    default_warning_threshold: int = Field(default=75, ge=1, le=100)
    default_critical_threshold: int = Field(default=90, ge=1, le=100)
    default_max_rollover_percentage: Decimal = Field(default=Decimal("20"), ge=0, le=100)


settings = Settings()
