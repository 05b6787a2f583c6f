# account_hub/infra/profiles/sqlalchemy_profile_store.py
from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from account_hub.models.profile import Profile
from account_hub.services._shared.ports import ProfileRecord, ProfileStore, ProfileStoreError
from account_hub.uow import SQLAlchemyUnitOfWork


def _to_record(row: Profile) -> ProfileRecord:
    return ProfileRecord(
        identity_id=row.identity_id,
        email=row.email,
        full_name=row.full_name,
        role=row.role,
        email_verified=bool(row.email_verified),
        phone_number=row.phone_number,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlAlchemyProfileStore(ProfileStore):
    """
    Profile store backed by the ``profiles`` table.

    Each call runs in its own Unit of Work. Database errors are reported as
    :class:`ProfileStoreError` so the service layer never sees ORM exceptions.

    .. note::
       Requires an active Flask app context (Flask-SQLAlchemy scoped session).
    """

    def __init__(self, uow_factory: Callable[..., SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork):
        self._uow_factory = uow_factory

    def find_by_email(self, email: str) -> ProfileRecord | None:
        try:
            with self._uow_factory(readonly=True) as uow:
                row = uow.profiles.get_by_email(email)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise ProfileStoreError(str(exc)) from exc

    def find_by_id(self, identity_id: str) -> ProfileRecord | None:
        try:
            with self._uow_factory(readonly=True) as uow:
                row = uow.profiles.get(identity_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise ProfileStoreError(str(exc)) from exc

    def upsert(self, record: ProfileRecord) -> ProfileRecord:
        values = {
            "email": record.email,
            "full_name": record.full_name,
            "role": record.role,
            "email_verified": record.email_verified,
            "phone_number": record.phone_number,
        }
        try:
            with self._uow_factory() as uow:
                row = uow.profiles.get(record.identity_id)
                if row is None:
                    row = uow.profiles.add(Profile(identity_id=record.identity_id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                    uow.profiles.flush()
            # Committed: re-read server-side timestamps.
            return _to_record(row)
        except IntegrityError as exc:
            raise ProfileStoreError("Profile violates a uniqueness constraint") from exc
        except SQLAlchemyError as exc:
            raise ProfileStoreError(str(exc)) from exc

    def update(self, identity_id: str, fields: Mapping[str, Any]) -> ProfileRecord | None:
        try:
            with self._uow_factory() as uow:
                row = uow.profiles.get(identity_id)
                if row is None:
                    return None
                uow.profiles.assign_updates(row, fields)
            return _to_record(row)
        except ValueError as exc:
            raise ProfileStoreError(str(exc)) from exc
        except SQLAlchemyError as exc:
            raise ProfileStoreError(str(exc)) from exc
