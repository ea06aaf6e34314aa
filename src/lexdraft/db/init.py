from __future__ import annotations

from lexdraft.config import get_settings
from lexdraft.db.base import Base
from lexdraft.db.session import engine
from lexdraft.db import models  # noqa: F401


def ensure_data_directories() -> None:
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": len(Base.metadata.tables)}
