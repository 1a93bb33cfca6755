"""
Injectable time source. Services take a `Clock` instead of calling
datetime.now() so tests can pin "now".
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
