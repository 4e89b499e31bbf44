"""Propagate the acting user's identity through the call stack using contextvars.

The acting user is whoever holds the session of the current request. Admin
services read it to attribute audit entries without threading an operator id
through every call.
"""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_acting_user_id: ContextVar[UUID | None] = ContextVar("acting_user_id", default=None)


def get_acting_user_id() -> UUID:
    """
    Get the acting user's ID from context.

    Raises RuntimeError if no user context is set. Admin mutations outside an
    authenticated request are a bug.
    """
    user_id = _acting_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No acting user set. This usually means an admin operation ran "
            "outside of an authenticated request."
        )
    return user_id


def peek_acting_user_id() -> UUID | None:
    """Acting user's ID, or None when no request context is active."""
    return _acting_user_id.get()


def set_acting_user_id(user_id: UUID) -> None:
    """Called by auth middleware after validating the session."""
    _acting_user_id.set(user_id)


def clear_acting_user_id() -> None:
    """
    Clear user context.

    Must be called in a finally block to prevent context leakage.
    """
    _acting_user_id.set(None)


@contextmanager
def acting_as(user_id: UUID):
    """
    Temporarily set the acting user.

    Useful for tests and maintenance scripts that run admin operations:

        with acting_as(admin_id):
            batch.apply_to_many(user_ids, BatchAction.DISABLE)
    """
    previous = _acting_user_id.get()
    set_acting_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_acting_user_id()
        else:
            set_acting_user_id(previous)
