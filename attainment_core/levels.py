# attainment_core/levels.py
from . import config
from .errors import ConfigurationError


def thresholds() -> tuple[float, float]:
    """(level 3 minimum, level 2 minimum) in percent of the cohort."""
    hi, lo = float(config.LEVEL3_MIN_PCT), float(config.LEVEL2_MIN_PCT)
    if not 0.0 <= lo < hi <= 100.0:
        raise ConfigurationError(f"attainment thresholds must satisfy 0 <= level2 < level3 <= 100, got {lo}/{hi}")
    return hi, lo


def attainment_level(pct_above_target: float) -> int:
    hi, lo = thresholds()
    p = float(pct_above_target)
    if p >= hi: return 3
    if p >= lo: return 2
    return 1


def criteria(subject_target: float) -> dict[int, str]:
    t = f"{float(subject_target):g}"
    hi, lo = (f"{x:g}" for x in thresholds())
    return {
        3: f"If {hi}% and above students have scored above {t}%",
        2: f"If {lo}% to {hi}% of students have scored above {t}%",
        1: f"If less than {lo}% students have scored above {t}%",
    }
