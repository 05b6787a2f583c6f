"""Repository package exposing persistence-layer access for the mapped models."""

from __future__ import annotations

from account_hub.repositories.base import BaseRepository
from account_hub.repositories.profile import ProfileRepository

__all__ = ["BaseRepository", "ProfileRepository"]
