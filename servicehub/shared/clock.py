from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current instant (UTC). Routers take it as a dependency so tests can pin the clock."""
    return datetime.now(timezone.utc)
