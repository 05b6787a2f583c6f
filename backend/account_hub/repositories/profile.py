"""Profile repository."""

from __future__ import annotations

from account_hub.models.profile import Profile
from account_hub.repositories.base import BaseRepository
from account_hub.services._shared.ports import UPDATABLE_FIELDS


class ProfileRepository(BaseRepository[Profile]):
    """Persistence-only repository for :class:`Profile`."""

    model = Profile

    def _pk_attr(self):
        return Profile.identity_id

    def _updatable_fields(self):
        return set(UPDATABLE_FIELDS)

    def get_by_email(self, email: str) -> Profile | None:
        """Fetch a profile by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: Profile or ``None`` when not found.
        :rtype: Profile | None
        """
        return self.find_one(email=email.strip().lower())
