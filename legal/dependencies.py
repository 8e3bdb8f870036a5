"""
Shared FastAPI dependencies for the litigation routers.
"""

from dataclasses import dataclass
from typing import Generator

from fastapi import Query, Request
from sqlalchemy.orm import Session


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request, closed afterwards"""
    yield from request.app.state.db_manager.get_session()


@dataclass
class PageParams:
    page: int
    limit: int


def get_page_params(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(None, ge=1),
) -> PageParams:
    """page/limit query parameters; limit defaults to and is capped by the app settings"""
    settings = request.app.state.settings
    if limit is None:
        limit = settings.default_page_size
    return PageParams(page=page, limit=min(limit, settings.max_page_size))
