"""Human-friendly tracking ID generation."""

from __future__ import annotations

import random
import string
from collections.abc import Callable
from datetime import UTC, datetime

TRACKING_ID_ALPHABET = string.ascii_uppercase + string.digits
RANDOM_PART_LENGTH = 5


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TrackingIdGenerator:
    """Generates IDs of the form ``ST-XXXXX-YYMMDD``.

    ``XXXXX`` is drawn from uppercase letters and digits, ``YYMMDD`` is the
    generation date. The generator keeps no state; uniqueness against
    existing IDs is the caller's job.

    Args:
        rng: Entropy source exposing ``choice``. Defaults to the OS source.
        clock: Returns the current time.
        prefix: Leading segment, ``ST`` unless configured otherwise.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utc_now,
        prefix: str = "ST",
    ) -> None:
        self._rng = rng or random.SystemRandom()
        self._clock = clock
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def generate(self) -> str:
        random_part = "".join(
            self._rng.choice(TRACKING_ID_ALPHABET) for _ in range(RANDOM_PART_LENGTH)
        )
        date_part = self._clock().strftime("%y%m%d")
        return f"{self._prefix}-{random_part}-{date_part}"
