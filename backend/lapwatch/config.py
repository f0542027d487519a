"""
Runtime configuration.

Settings come from environment variables so that run_server.py (or a process
manager) can configure the FastAPI lifespan before uvicorn imports the app.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from lapwatch.models.lap import DEFAULT_SIM


DB_PATH_ENV = "LAPWATCH_DB_PATH"
UDP_HOST_ENV = "LAPWATCH_UDP_HOST"
UDP_PORT_ENV = "LAPWATCH_UDP_PORT"
LISTENER_ENV = "LAPWATCH_LISTENER"
SIM_ENV = "LAPWATCH_SIM"
STORE_TIMEOUT_ENV = "LAPWATCH_STORE_TIMEOUT_S"
SESSION_RESET_ENV = "LAPWATCH_SESSION_RESET"

DEFAULT_DB_PATH = Path("./data/lap_times.db")
DEFAULT_UDP_HOST = "0.0.0.0"
DEFAULT_UDP_PORT = 5000
DEFAULT_STORE_TIMEOUT_S = 5.0


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class Settings:
    """Settings for the lap tracker process."""

    db_path: Path = DEFAULT_DB_PATH
    udp_host: str = DEFAULT_UDP_HOST
    udp_port: int = DEFAULT_UDP_PORT
    listener_enabled: bool = True
    sim: str = DEFAULT_SIM
    store_timeout_s: float = DEFAULT_STORE_TIMEOUT_S
    reset_on_session_change: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=Path(os.getenv(DB_PATH_ENV, str(DEFAULT_DB_PATH))),
            udp_host=os.getenv(UDP_HOST_ENV, DEFAULT_UDP_HOST),
            udp_port=int(os.getenv(UDP_PORT_ENV, str(DEFAULT_UDP_PORT))),
            listener_enabled=_env_flag(LISTENER_ENV, True),
            sim=os.getenv(SIM_ENV, DEFAULT_SIM).strip() or DEFAULT_SIM,
            store_timeout_s=float(os.getenv(STORE_TIMEOUT_ENV, str(DEFAULT_STORE_TIMEOUT_S))),
            reset_on_session_change=_env_flag(SESSION_RESET_ENV, False),
        )
