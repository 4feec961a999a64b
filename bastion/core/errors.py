"""
Bastion - Platform Errors
=========================

Failures raised by enforcement primitives.

DESIGN:
    The platform adapter translates discord.py exceptions into these so
    the services can tell "not allowed" from "already gone" without
    importing discord.

Author: حَـــــنَّـــــا
"""

from typing import Optional


class PlatformError(Exception):
    """An enforcement call failed for a reason other than authority or absence."""

    pass


class AuthorityError(PlatformError):
    """
    The bot is not allowed to perform the mutation.

    Attributes:
        blocker: Name of the role or member that blocked it, when known.
    """

    def __init__(self, message: str, blocker: Optional[str] = None) -> None:
        super().__init__(message)
        self.blocker = blocker


class NotFoundError(PlatformError):
    """The member, role or channel no longer exists."""

    pass


__all__ = [
    "PlatformError",
    "AuthorityError",
    "NotFoundError",
]
