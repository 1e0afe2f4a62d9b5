from collections.abc import Iterator
from contextlib import contextmanager

from cadence.domain.exceptions import SchedulingError, StoreUnavailableError


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Let domain errors through and wrap anything else as ``StoreUnavailableError``."""
    try:
        yield
    except SchedulingError:
        raise
    except Exception as exc:
        raise StoreUnavailableError(f"{action} failed: {exc}") from exc
