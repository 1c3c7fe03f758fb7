"""Persistence of citizen profiles with versioned updates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from src.errors import ConcurrentModification
from src.models.user_profile import UserProfile

if TYPE_CHECKING:
    from src.services.store import VersionedStore

logger = structlog.get_logger(__name__)


class ProfileRepository:
    __slots__ = ("_store",)

    def __init__(self, store: VersionedStore) -> None:
        self._store = store

    async def create(self, profile: UserProfile) -> UserProfile:
        saved = await self._store.create(profile.profile_id, profile)
        logger.info("profile.created", profile_id=saved.profile_id)
        return saved

    async def get(self, profile_id: str) -> UserProfile:
        return await self._store.require(profile_id, UserProfile)

    async def update(
        self,
        profile_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> UserProfile:
        """Apply *changes* and persist.

        With *expected_version* the update fails with
        :class:`~src.errors.ConcurrentModification` if the stored profile
        has moved on since the caller read it.
        """
        current = await self.get(profile_id)
        if expected_version is not None and current.version != expected_version:
            raise ConcurrentModification(profile_id, expected_version, current.version)
        updated = await self._store.save(profile_id, current.update(changes))
        logger.info(
            "profile.updated",
            profile_id=profile_id,
            fields=sorted(changes),
            version=updated.version,
        )
        return updated
