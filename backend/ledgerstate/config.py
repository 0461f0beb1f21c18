"""Runtime settings, read from the environment (and a .env file if present)."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

_ENV_PREFIX = "LEDGERSTATE_"


class Settings(BaseModel):
    db_path: str = "ledgerstate.db"
    ledger_id: str = "default"
    genesis_height: int = 0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Build settings from LEDGERSTATE_* variables. Unset ones keep defaults."""
        load_dotenv(env_file or Path(__file__).resolve().parent.parent / ".env")
        values = {}
        for name in cls.model_fields:
            raw = os.environ.get(_ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
