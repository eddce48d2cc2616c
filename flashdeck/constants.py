"""
SM-2 algorithm constants.

This module contains the static SM-2 (SuperMemo 2) scheduling parameters.
No runtime configuration or path defaults - pure constants only.
"""
from typing import Tuple

# Ease factor given to a card that has never been reviewed.
DEFAULT_EASE_FACTOR: float = 2.5

# Lower bound for the ease factor. Below this a card would be rescheduled
# near-daily forever with no way to recover.
MINIMUM_EASE_FACTOR: float = 1.3

# Fixed intervals (days) for the first and second consecutive successes.
# Later successes multiply the previous interval by the ease factor.
BOOTSTRAP_INTERVALS: Tuple[int, int] = (1, 6)

# Interval (days) after a failed review.
LAPSE_INTERVAL: int = 1

# Quality grades are integers in [MIN_QUALITY, MAX_QUALITY].
MIN_QUALITY: int = 0
MAX_QUALITY: int = 5

# Lowest grade that counts as a successful recall.
PASSING_QUALITY: int = 3

# Lowest grade that labels the card "easy".
EASY_QUALITY: int = 4

# Cards whose interval reached this many days count as mastered in deck stats.
MATURE_INTERVAL_DAYS: int = 21
