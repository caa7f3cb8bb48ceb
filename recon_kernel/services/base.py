"""
BaseService -- abstract base for kernel and engine services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and an injected ``Clock``; they persist
    with ``session.flush()`` and never commit.

Invariants enforced:
    - Transaction boundaries belong to the caller (the ReconciliationEngine
      facade, a CLI command, or a test).  A service that commits would break
      the atomicity of the balance correction's three-part write.
"""

from abc import ABC

from sqlalchemy.orm import Session

from recon_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for services that write within a caller's transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only listings -- those belong in
          ``recon_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
