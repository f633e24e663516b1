from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os
import sys


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class Settings:
    db_path: Optional[Path] = None
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    api_timeout: float = 10.0
    optimistic_locking: bool = False

    @property
    def uses_api(self) -> bool:
        return bool(self.api_url)


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "RetailSalesManager") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "retail.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def get_settings(environ: Optional[dict[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    db_path = env.get("RSM_DB_PATH")
    timeout = env.get("RSM_API_TIMEOUT")
    return Settings(
        db_path=Path(db_path) if db_path else None,
        api_url=(env.get("RSM_API_URL") or "").strip() or None,
        api_token=(env.get("RSM_API_TOKEN") or "").strip() or None,
        api_timeout=float(timeout) if timeout else 10.0,
        optimistic_locking=_flag(env.get("RSM_OPTIMISTIC_LOCKING")),
    )
