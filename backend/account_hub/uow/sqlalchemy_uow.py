"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from account_hub.core.extensions import db
from account_hub.repositories import ProfileRepository
from account_hub.uow.base import UnitOfWork


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    :param readonly: When ``True`` the scope always rolls back on exit, so
        lookups never leave a transaction open or commit stray changes.
    """

    def __init__(self, *, readonly: bool = False, session: Session | None = None) -> None:
        self.session: Session = session if session is not None else db.session
        self.readonly = readonly
        self.profiles = ProfileRepository(session=self.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and not self.readonly:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        if self.readonly:
            raise RuntimeError("Read-only UnitOfWork does not allow commit().")
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
