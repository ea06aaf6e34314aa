from __future__ import annotations

from collections.abc import Generator
from typing import Any

from fastapi import Depends
from sqlalchemy.orm import Session

from lexdraft.core.services import CaseServices, build_services
from lexdraft.db.session import get_db_session


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_job_options() -> dict[str, Any]:
    """Keyword arguments forwarded to ``build_services`` (model, retriever, settings)."""
    return {}


def get_services(
    db: Session = Depends(get_db),
    job_options: dict[str, Any] = Depends(get_job_options),
) -> CaseServices:
    return build_services(db, **job_options)
