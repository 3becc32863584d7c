"""
Trends Options -- immutable engine configuration.

Options are validated when the value is constructed. They can be loaded
from the `trends:` section of a YAML file:

    trends:
      threshold: 5
      review_threshold: 3
      score_halflife_hours: 2
      decay_threshold: 0.3
      usage_window_hours: 24
      default_locale: en
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional, Union

import yaml

from trends.errors import OptionsValidationError

logger = logging.getLogger(__name__)


# Keys accepted in the `trends:` section of the YAML file
OPTION_KEYS = [
    "threshold",
    "review_threshold",
    "score_halflife_hours",
    "decay_threshold",
    "usage_window_hours",
    "default_locale",
]


@dataclass(frozen=True)
class TrendsOptions:
    """
    Scoring and gating parameters for trending statuses.

    Attributes:
        threshold: Minimum observed engagement (reblogs + favourites) for
            a status to score above zero.
        review_threshold: Rank among allowed statuses that forms the
            review boundary.
        score_halflife: Age after which a raw score is halved.
        decay_threshold: Records scoring below this are pruned.
        usage_window: How long a recorded usage keeps a status a candidate.
        default_locale: Platform locale used as the middle ordering tier.
    """
    threshold: int = 5
    review_threshold: int = 3
    score_halflife: timedelta = timedelta(hours=2)
    decay_threshold: float = 0.3
    usage_window: timedelta = timedelta(days=1)
    default_locale: str = "en"

    def __post_init__(self):
        if not _is_int(self.threshold) or self.threshold < 0:
            raise OptionsValidationError(
                f"threshold must be a non-negative integer, got {self.threshold!r}"
            )
        if not _is_int(self.review_threshold) or self.review_threshold < 1:
            raise OptionsValidationError(
                f"review_threshold must be a positive integer, got {self.review_threshold!r}"
            )
        if not isinstance(self.score_halflife, timedelta) or self.score_halflife <= timedelta(0):
            raise OptionsValidationError(
                f"score_halflife must be a positive duration, got {self.score_halflife!r}"
            )
        if (isinstance(self.decay_threshold, bool)
                or not isinstance(self.decay_threshold, (int, float))
                or self.decay_threshold < 0):
            raise OptionsValidationError(
                f"decay_threshold must be a non-negative number, got {self.decay_threshold!r}"
            )
        if not isinstance(self.usage_window, timedelta) or self.usage_window <= timedelta(0):
            raise OptionsValidationError(
                f"usage_window must be a positive duration, got {self.usage_window!r}"
            )
        if not isinstance(self.default_locale, str) or not self.default_locale.strip():
            raise OptionsValidationError("default_locale must be a non-empty string")

    def to_dict(self) -> dict:
        """Serializable view, durations expressed in hours."""
        return {
            "threshold": self.threshold,
            "review_threshold": self.review_threshold,
            "score_halflife_hours": self.score_halflife.total_seconds() / 3600,
            "decay_threshold": self.decay_threshold,
            "usage_window_hours": self.usage_window.total_seconds() / 3600,
            "default_locale": self.default_locale,
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def load_options(path: Optional[Union[str, Path]] = None) -> TrendsOptions:
    """
    Load options from a YAML file, falling back to defaults.

    Args:
        path: YAML file with a `trends:` section. A missing file (or None)
              yields the default options.

    Returns:
        Validated TrendsOptions.

    Raises:
        OptionsValidationError: If the file is malformed, has unknown keys,
            or any value is out of range.
    """
    if path is None or not Path(path).exists():
        logger.debug(f"No trends options file at {path}, using defaults")
        return TrendsOptions()

    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise OptionsValidationError(f"Options file {path} is not valid YAML: {e}") from e

    if data is None:
        return TrendsOptions()
    if not isinstance(data, dict):
        raise OptionsValidationError(f"Options file {path} must contain a mapping")

    section = data.get("trends", {}) or {}
    if not isinstance(section, dict):
        raise OptionsValidationError(f"'trends' section in {path} must be a mapping")

    unknown = [k for k in section if k not in OPTION_KEYS]
    if unknown:
        raise OptionsValidationError(f"Unknown trends options in {path}: {unknown}")

    return _build_options(section)


def _build_options(section: dict) -> TrendsOptions:
    """Construct TrendsOptions from a validated YAML section."""
    kwargs = {}

    for key in ("threshold", "review_threshold", "decay_threshold", "default_locale"):
        if key in section:
            kwargs[key] = section[key]

    try:
        if "score_halflife_hours" in section:
            kwargs["score_halflife"] = timedelta(hours=float(section["score_halflife_hours"]))
        if "usage_window_hours" in section:
            kwargs["usage_window"] = timedelta(hours=float(section["usage_window_hours"]))
    except (TypeError, ValueError) as e:
        raise OptionsValidationError(f"Durations must be numbers of hours: {e}") from e

    options = TrendsOptions(**kwargs)
    logger.info(f"Loaded trends options: {options.to_dict()}")
    return options
