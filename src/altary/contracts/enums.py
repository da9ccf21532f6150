# src/altary/contracts/enums.py
"""Kinds, levels, and severity codes shared across subsystem boundaries."""

from enum import IntFlag, StrEnum


class EventKind(StrEnum):
    """What produced an event.

    Serialized as the ``type`` key of the wire payload.
    """

    ERROR = "error"
    EXCEPTION = "exception"


class Level(StrEnum):
    """Semantic level of an event.

    Errors derive their level from a raw severity code via
    ``altary.levels.map_level``. Exceptions always carry ``EXCEPTION``.
    """

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    DEPRECATED = "deprecated"
    INFO = "info"
    EXCEPTION = "exception"


class Severity(IntFlag):
    """Raw severity codes for non-exception faults.

    Members are single bits so that a combination doubles as a reporting
    mask: ``Severity.WARNING | Severity.USER_WARNING`` captures only
    warnings.

    USER_* codes are reported by application code (``UserWarning``
    subclasses, explicit ``capture_error`` calls); the plain codes come from
    the interpreter and the standard library.
    """

    ERROR = 1
    WARNING = 2
    NOTICE = 4
    DEPRECATED = 8
    USER_ERROR = 16
    USER_WARNING = 32
    USER_NOTICE = 64
    USER_DEPRECATED = 128
    ALL = 255
