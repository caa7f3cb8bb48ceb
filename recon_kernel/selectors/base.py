"""
Module: recon_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, plus
    the shared pagination helper.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but never
      call session.add(), session.delete(), session.commit() or
      session.flush().
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from recon_kernel.domain.dtos import Page
from recon_kernel.exceptions import InvalidPaginationError

DEFAULT_MAX_LIMIT = 100


def validate_pagination(page: int, limit: int, max_limit: int = DEFAULT_MAX_LIMIT) -> None:
    """Raise InvalidPaginationError unless page >= 1 and 1 <= limit <= max_limit."""
    if (
        isinstance(page, bool)
        or isinstance(limit, bool)
        or not isinstance(page, int)
        or not isinstance(limit, int)
        or page < 1
        or limit < 1
        or limit > max_limit
    ):
        raise InvalidPaginationError(page, limit, max_limit)


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Guarantees:
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session

    def _paginate(
        self,
        query: Select[Any],
        page: int,
        limit: int,
        max_limit: int = DEFAULT_MAX_LIMIT,
    ) -> Page[Any]:
        """Run an ordered query for one page and count the full result."""
        validate_pagination(page, limit, max_limit)
        total = self.session.execute(
            select(func.count()).select_from(query.order_by(None).subquery())
        ).scalar_one()
        items = self.session.execute(
            query.offset((page - 1) * limit).limit(limit)
        ).scalars().all()
        return Page(items=tuple(items), page=page, limit=limit, total=total)
