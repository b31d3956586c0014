from __future__ import annotations

import logging
import re
from typing import Any, Callable, TypeVar

from pymongo.errors import DuplicateKeyError

from onboarding.utils.datetime import utc_now
from onboarding.utils.errors import ApiError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")
_SEQ_RE = re.compile(r"-(\d+)$")


class EmployeeCodeGenerator:
    """Year-scoped sequential codes: ``<prefix>-<year>-<zero padded sequence>``.

    The next code is one past the highest code already stored for the year.
    Codes found taken on the pre-check, or rejected by the unique index at
    commit time, are skipped; after ``max_attempts`` tries allocation fails.
    """

    def __init__(
        self,
        store,
        *,
        prefix: str = "JP-EMP",
        pad: int = 6,
        max_attempts: int = 1_000_000,
        clock: Callable[[], Any] = utc_now,
    ):
        self._store = store
        self._prefix = prefix
        self._pad = pad
        self._max_attempts = max_attempts
        self._clock = clock

    def year_prefix(self, year: int) -> str:
        return f"{self._prefix}-{year}-"

    def format(self, year: int, sequence: int) -> str:
        return f"{self.year_prefix(year)}{str(sequence).zfill(self._pad)}"

    @staticmethod
    def parse_sequence(code: str | None) -> int:
        m = _SEQ_RE.search(str(code or ""))
        return int(m.group(1)) if m else 0

    def first_sequence(self, year: int) -> int:
        return self.parse_sequence(self._store.highest_code(self.year_prefix(year))) + 1

    def _exhausted(self, year: int) -> ApiError:
        logger.error("Employee code allocation exhausted for year=%s", year)
        return ApiError(
            "CODE_EXHAUSTED",
            "Unable to generate a unique employee code. Please try again.",
            status=500,
            details={"year": year},
        )

    def allocate(self, commit: Callable[[str], _T], now=None) -> tuple[str, _T]:
        """Find a free code and hand it to ``commit``.

        ``commit`` performs the write; a ``DuplicateKeyError`` from it means
        another request took the code first and the next one is tried. The
        year is taken from ``now`` when given, so it matches the assignment time.
        """
        year = (now or self._clock()).year
        max_sequence = 10**self._pad - 1
        sequence = self.first_sequence(year)

        for _ in range(self._max_attempts):
            if sequence > max_sequence:
                break
            code = self.format(year, sequence)
            sequence += 1
            if self._store.code_exists(code):
                continue
            try:
                return code, commit(code)
            except DuplicateKeyError:
                logger.warning("Employee code collision code=%s, retrying", code)
                continue

        raise self._exhausted(year)
