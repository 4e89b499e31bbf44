"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso, to_epoch_millis, from_epoch_millis, now_millis
from utils.user_context import (
    get_acting_user_id,
    peek_acting_user_id,
    set_acting_user_id,
    clear_acting_user_id,
    acting_as,
)
