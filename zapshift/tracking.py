import secrets
from datetime import datetime, timezone

from zapshift.config import TRACKING_PREFIX


def generate_tracking_id(prefix: str = TRACKING_PREFIX, now: datetime = None) -> str:
    """
    Build a human-readable tracking code such as ``ZAP-20261018-4F9A2C``.

    Date segment plus 24 random bits. Collisions are unlikely but possible,
    and nothing downstream relies on the code being unique.
    """
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"
