from __future__ import annotations


class AttainmentError(Exception):
    """Base class for failures surfaced by the attainment core."""


class DataIntegrityError(AttainmentError):
    """Input rows are inconsistent: bad outcome reference, orphan mark, duplicate label."""


class ConfigurationError(AttainmentError):
    """Caller-supplied settings are unusable, e.g. a target outside 0..100."""


__all__ = ["AttainmentError", "DataIntegrityError", "ConfigurationError"]
