from datetime import datetime, timezone


def utcnow() -> datetime:
    # BSON datetimes carry no zone; store naive UTC so reads and query bounds compare cleanly
    return datetime.now(timezone.utc).replace(tzinfo=None)
