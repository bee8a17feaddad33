from fastapi import Query
import logging

from ..auth import get_current_actor
from ..database import atomic, get_db
from ..exceptions import InternalError, LedgerError

logger = logging.getLogger(__name__)

__all__ = ["atomic", "get_current_actor", "get_db", "InternalError", "LedgerError", "Pagination"]


class Pagination:
    """skip/limit query parameters shared by the list endpoints."""

    def __init__(
        self,
        skip: int = Query(0, ge=0),
        limit: int = Query(100, ge=1, le=500),
    ):
        self.skip = skip
        self.limit = limit
