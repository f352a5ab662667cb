"""Runtime settings for statement matching."""

import os
import logging
from dataclasses import dataclass, replace

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class MatchSettings:
    """Thresholds, tolerance and signal weights used to score candidates.

    The three weights sum to 1.0 so a pair with equal amount, same-day date and
    identical description scores exactly 1.0.
    """

    date_tolerance_days: int = 7
    auto_accept: float = 0.85
    review: float = 0.70
    amount_weight: float = 0.5
    date_weight: float = 0.2
    text_weight: float = 0.3

    def __post_init__(self):
        if self.date_tolerance_days < 0:
            raise ValueError(f"Date tolerance cannot be negative: {self.date_tolerance_days}")
        if not 0 <= self.review <= self.auto_accept <= 1:
            raise ValueError(
                f"Thresholds must satisfy 0 <= review <= auto_accept <= 1, "
                f"got review={self.review}, auto_accept={self.auto_accept}"
            )

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from defaults plus ``RECONCILIATION_*`` environment overrides.

        Args:
            environ (Mapping, optional): Environment to read. Defaults to os.environ.

        Returns:
            MatchSettings: Settings with any overrides applied

        Raises:
            ValueError: If an override is not a number or breaks threshold ordering
        """
        environ = os.environ if environ is None else environ
        settings = cls()

        overrides = {}
        tolerance = environ.get('RECONCILIATION_DATE_TOLERANCE_DAYS')
        auto_accept = environ.get('RECONCILIATION_AUTO_ACCEPT_THRESHOLD')
        review = environ.get('RECONCILIATION_REVIEW_THRESHOLD')
        if tolerance:
            overrides['date_tolerance_days'] = int(tolerance)
        if auto_accept:
            overrides['auto_accept'] = float(auto_accept)
        if review:
            overrides['review'] = float(review)

        if overrides:
            logger.info(f"Applying match setting overrides: {overrides}")
            settings = replace(settings, **overrides)
        return settings
