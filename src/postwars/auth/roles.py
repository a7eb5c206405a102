"""Role hierarchy: REGULAR < TEAM_LEAD < ADMIN."""

from __future__ import annotations

from enum import IntEnum


class Role(IntEnum):
    REGULAR = 1
    TEAM_LEAD = 2
    ADMIN = 3

    @classmethod
    def parse(cls, value: str | None) -> Role:
        """Parse the stored role name; unknown or empty values fall back to REGULAR."""
        if not value:
            return cls.REGULAR
        try:
            return cls[value.upper()]
        except KeyError:
            return cls.REGULAR


def has_role(user_role: str | None, required: Role) -> bool:
    """True if the user's role is at least `required` in the hierarchy."""
    return Role.parse(user_role) >= required
