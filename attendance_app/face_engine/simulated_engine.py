"""
Simulated face matching.

There is no computer vision here: the captured frame is never inspected.
Each registered student gets a randomly drawn confidence, nudged upwards for
recently registered students, and the best one above the threshold wins.
A fixed share of attempts is thrown away to mimic "no face detected".
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol, Sequence, Tuple

import numpy as np

from attendance_app.schemas import StudentOut
from attendance_app.utils.logger import get_logger
from attendance_app.utils.time_utils import to_local

log = get_logger(__name__)

# -----------------------------
# Simulation constants
# -----------------------------
BASE_CONFIDENCE_MIN = 0.60
BASE_CONFIDENCE_SPAN = 0.35      # base confidence is drawn from [0.60, 0.95)
RECENCY_BONUS_MAX = 0.10
RECENCY_BONUS_DAYS = 30
MAX_CONFIDENCE = 0.98
FALSE_NEGATIVE_RATE = 0.15
PROCESSING_DELAY = (1.0, 3.0)    # seconds


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class MatchResult:
    student: StudentOut
    confidence: float


def recency_bonus(registered_at: datetime, now: datetime) -> float:
    """0.10 at registration, falling linearly to 0 thirty days later."""
    age_days = (to_local(now) - to_local(registered_at)).total_seconds() / 86400
    bonus = RECENCY_BONUS_MAX * (1 - age_days / RECENCY_BONUS_DAYS)
    return min(RECENCY_BONUS_MAX, max(0.0, bonus))


def simulated_confidence(student: StudentOut, now: datetime, rng: RandomSource) -> float:
    base = BASE_CONFIDENCE_MIN + float(rng.random()) * BASE_CONFIDENCE_SPAN
    return min(MAX_CONFIDENCE, base + recency_bonus(student.created_at, now))


async def match(
    frame: Optional[str],
    candidates: Sequence[StudentOut],
    threshold: float,
    rng: Optional[RandomSource] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    now: Optional[datetime] = None,
    delay_range: Tuple[float, float] = PROCESSING_DELAY,
) -> Optional[MatchResult]:
    """
    Picks the best-matching student for a captured frame.

    Returns None when there is nobody to match against, nobody clears the
    threshold, or the simulated detector misses the face. Ties keep the
    candidate seen first.
    """
    eligible = [s for s in candidates if s.photo]
    if not eligible:
        return None

    if rng is None:
        rng = np.random.default_rng()

    low, high = delay_range
    await sleep(low + float(rng.random()) * (high - low))

    now = now or datetime.now()
    best: Optional[StudentOut] = None
    best_confidence = 0.0
    for student in eligible:
        confidence = simulated_confidence(student, now, rng)
        if confidence >= threshold and (best is None or confidence > best_confidence):
            best, best_confidence = student, confidence

    # Simulated false negative, applied regardless of how good the match was.
    if float(rng.random()) < FALSE_NEGATIVE_RATE:
        log.debug("Simulated miss: no face recognized")
        return None

    if best is None:
        log.debug(f"No candidate reached threshold {threshold:.2f}")
        return None
    log.debug(f"Matched {best.id} with confidence {best_confidence:.4f}")
    # Thresholds have two decimals, so the rounded value still clears them.
    return MatchResult(student=best, confidence=round(best_confidence, 2))
