import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        auth_secret: str,
        token_max_age_hours: int,
        bcrypt_rounds: int,
        store_timeout_secs: float,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.auth_secret = auth_secret
        self.token_max_age_hours = token_max_age_hours
        self.bcrypt_rounds = bcrypt_rounds
        self.store_timeout_secs = store_timeout_secs


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCEFLOW_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "financeflow.db"
    database_url = os.getenv("FINANCEFLOW_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCEFLOW_TIMEZONE", "Asia/Kolkata")
    auth_secret = os.getenv(
        "FINANCEFLOW_AUTH_SECRET",
        "3c1f0e9a5b7d42f6a8e2c4b6d8f0a1c3e5b7d9f1a3c5e7b9d1f3a5c7e9b1d3f5",
    )
    token_max_age_hours = int(os.getenv("FINANCEFLOW_TOKEN_MAX_AGE_HOURS", "24"))
    bcrypt_rounds = int(os.getenv("FINANCEFLOW_BCRYPT_ROUNDS", "10"))
    store_timeout_secs = float(os.getenv("FINANCEFLOW_STORE_TIMEOUT_SECS", "5"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        auth_secret=auth_secret,
        token_max_age_hours=token_max_age_hours,
        bcrypt_rounds=bcrypt_rounds,
        store_timeout_secs=store_timeout_secs,
    )
