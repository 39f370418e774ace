from datetime import datetime, timezone

STATE_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def now_iso() -> str:
    """Current UTC time as stored in `state.json`, e.g. `2025-01-31T09:30:00Z`."""
    return datetime.now(timezone.utc).strftime(STATE_TIMESTAMP_FORMAT)


__all__ = ["STATE_TIMESTAMP_FORMAT", "now_iso"]
