# src/altary/capture/levels.py
"""Severity code to level mapping.

This module is the single source of truth for turning a raw severity code
into the semantic level reported to the collector, and for assigning a
severity code to a Python warning category.
"""

from altary.contracts.enums import Level, Severity

_ERROR_CODES = Severity.ERROR | Severity.USER_ERROR
_WARNING_CODES = Severity.WARNING | Severity.USER_WARNING
_NOTICE_CODES = Severity.NOTICE | Severity.USER_NOTICE
_DEPRECATED_CODES = Severity.DEPRECATED | Severity.USER_DEPRECATED


def map_level(code: int) -> Level:
    """Map a raw severity code to a semantic level.

    Total and pure: codes that are not exactly one known severity (unknown
    integers, combined masks, zero) map to ``Level.INFO``. Exceptions never
    pass through here; they always carry ``Level.EXCEPTION``.

    Args:
        code: Raw severity code.

    Returns:
        One of error, warning, notice, deprecated, info.

    Example:
        >>> map_level(Severity.USER_WARNING)
        <Level.WARNING: 'warning'>
        >>> map_level(4096)
        <Level.INFO: 'info'>
    """
    if code <= 0 or code & (code - 1):
        # Zero, negative, or more than one bit set
        return Level.INFO
    if code & _ERROR_CODES:
        return Level.ERROR
    if code & _WARNING_CODES:
        return Level.WARNING
    if code & _NOTICE_CODES:
        return Level.NOTICE
    if code & _DEPRECATED_CODES:
        return Level.DEPRECATED
    return Level.INFO


def severity_for_category(category: type[Warning]) -> Severity:
    """Assign a severity code to a warning category.

    Subclass checks run most-specific first: ``DeprecationWarning`` is
    checked before the catch-all so that a custom subclass of it is still
    reported as deprecated.
    """
    if issubclass(category, (DeprecationWarning, PendingDeprecationWarning, FutureWarning)):
        return Severity.DEPRECATED
    if issubclass(category, (ImportWarning, EncodingWarning)):
        return Severity.NOTICE
    if issubclass(category, (RuntimeWarning, ResourceWarning, SyntaxWarning, BytesWarning, UnicodeWarning)):
        return Severity.WARNING
    # UserWarning and any application-defined Warning subclass
    return Severity.USER_WARNING
