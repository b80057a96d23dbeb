"""Options that control how a serializer treats data."""

from enum import Enum, Flag, auto


class ValidationFlag(Flag):
    """How strictly data is validated while deserializing."""

    STANDARD_VALIDATION = 0x00
    NO_EXTRA_PROPERTIES = 0x01
    ALL_PROPERTIES = 0x02
    STRICT_BASIC_TYPES = 0x04

    FULL_PROPERTY_VALIDATION = NO_EXTRA_PROPERTIES | ALL_PROPERTIES
    FULL_VALIDATION = FULL_PROPERTY_VALIDATION | STRICT_BASIC_TYPES


class Polymorphing(Enum):
    """How polymorphic object types are handled."""

    DISABLED = auto()
    ENABLED = auto()
    FORCED = auto()


class MultiMapMode(Enum):
    """How multi maps and sets are written."""

    MAP = auto()
    LIST = auto()
    DENSE_MAP = auto()