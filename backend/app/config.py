"""
Process configuration for the ledger API.

Values come from the environment (prefix ``CAB_LEDGER_``) or a ``.env`` file.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="CAB_LEDGER_", env_file=".env", case_sensitive=False)

    app_name: str = "Cab Ledger API"
    db_path: str = "cab_ledger.db"
    log_level: str = "INFO"
    json_logs: bool = False

    # YAML tariff/logic overrides used to seed an empty store
    settings_file: Optional[Path] = None
    export_dir: Path = Path("exports")
