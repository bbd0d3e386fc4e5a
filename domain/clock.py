import datetime
import threading

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(moment: datetime.datetime) -> str:
    """Fixed-width UTC text; lexical order equals chronological order."""
    return moment.astimezone(datetime.timezone.utc).strftime(TIMESTAMP_FORMAT)


class MonotonicClock:
    """
    Hands out comment timestamps that never go backwards for this process,
    even if the wall clock is stepped back. Equal values are allowed; the
    comment id breaks those ties.
    """

    def __init__(self, now=None):
        self._now = now or (lambda: datetime.datetime.now(datetime.timezone.utc))
        self._last = ""
        self._lock = threading.Lock()

    def __call__(self) -> str:
        stamp = format_timestamp(self._now())
        with self._lock:
            if stamp < self._last:
                stamp = self._last
            self._last = stamp
        return stamp
