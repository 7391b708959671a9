from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_path: Path = Path.home() / "PrintShop"
    default_currency: str = "AED"
    # Optimistic-concurrency retries before ConcurrencyConflict reaches the caller.
    max_conflict_retries: int = 3
    log_level: str = "INFO"

    @property
    def db_path(self) -> Path:
        return self.data_path / "printshop.sqlite"

    model_config = {"env_prefix": "PRINTSHOP_"}


settings = Settings()
