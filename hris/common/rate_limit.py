"""Rate limiting configuration using slowapi.

The module-level Limiter is wired into the app in main.py; the batch
recalculation endpoint applies a tighter per-route limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
)

BATCH_RECALCULATION_LIMIT = "5/minute"
