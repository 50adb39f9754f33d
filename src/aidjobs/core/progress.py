"""Per-user milestone flags mirrored between memory and the relational store.

Remote failures are logged and reported as ``False``; they never raise, so a
caller always has usable (possibly default or stale) flags.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from aidjobs.errors import UnknownProgressFlagError
from aidjobs.types import PROGRESS_FLAG_NAMES, ProgressFlags

logger = logging.getLogger(__name__)


def default_flag_values() -> dict[str, bool]:
    return ProgressFlags().model_dump()


def validate_flag_names(names: Any) -> None:
    unknown = [name for name in names if name not in PROGRESS_FLAG_NAMES]
    if unknown:
        raise UnknownProgressFlagError(unknown)


class ProgressFlagSynchronizer:
    def __init__(self, repo: Any, user_id: str | None):
        self.repo = repo
        self.user_id = user_id
        self.flags = ProgressFlags()
        self.loading = True

    def ensure_record(self, user_id: str | None = None) -> bool:
        user_id = user_id or self.user_id
        if not user_id:
            return False

        try:
            if self.repo.get_user(user_id) is None:
                logger.error("Cannot ensure progress record: user %s not found", user_id)
                return False

            if self.repo.get_progress_flags(user_id) is None:
                self.repo.create_progress_flags(user_id, default_flag_values())
                logger.info("Created progress record for user %s", user_id)
        except SQLAlchemyError:
            logger.exception("Error ensuring progress record for user %s", user_id)
            return False
        return True

    def fetch(self) -> ProgressFlags:
        if not self.user_id:
            self.loading = False
            return self.flags

        try:
            if not self.ensure_record(self.user_id):
                logger.error("Failed to ensure progress record for user %s", self.user_id)
                self.flags = ProgressFlags()
                return self.flags

            try:
                values = self.repo.read_progress_flags(self.user_id)
            except (SQLAlchemyError, LookupError):
                logger.exception("Error fetching progress flags for user %s", self.user_id)
                self.flags = ProgressFlags()
            else:
                self.flags = ProgressFlags.model_validate(
                    {name: bool(values.get(name, False)) for name in PROGRESS_FLAG_NAMES}
                )
            return self.flags
        finally:
            self.loading = False

    def update_flag(self, name: str, value: bool) -> bool:
        validate_flag_names([name])
        return self._apply({name: bool(value)}, context=f"flag {name}")

    def update_flags(self, updates: Mapping[str, bool]) -> bool:
        validate_flag_names(updates.keys())
        if not updates:
            return True
        return self._apply({name: bool(value) for name, value in updates.items()}, context="flags")

    def reset_all(self) -> bool:
        """Clear every milestone for the user; used by support tooling."""
        return self._apply(default_flag_values(), context="reset")

    def _apply(self, values: dict[str, bool], *, context: str) -> bool:
        if not self.user_id:
            logger.warning("Cannot update %s: no user id", context)
            return False

        if not self.ensure_record(self.user_id):
            logger.error("Failed to ensure progress record before updating %s", context)
            return False

        try:
            updated = self.repo.update_progress_flags(self.user_id, values)
        except SQLAlchemyError as exc:
            logger.error(
                "Error updating progress %s user_id=%s values=%s error=%s",
                context,
                self.user_id,
                values,
                exc,
            )
            return False

        if not updated:
            logger.error("Progress %s update matched no row for user %s", context, self.user_id)
            return False

        self.flags = self.flags.model_copy(update=values)
        logger.info("Updated progress %s for user %s: %s", context, self.user_id, values)
        return True
