"""Type converters, the capability checks they share, and their factories."""

from __future__ import annotations

import datetime
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, IntEnum, auto
from types import MappingProxyType
from typing import Any

from .options import ValidationFlag


@dataclass(frozen=True)
class Tagged:
    """A CBOR value carrying a semantic tag."""

    tag: int
    value: Any


class CborType(Enum):
    """Kinds of CBOR data items."""

    INTEGER = auto()
    BYTE_ARRAY = auto()
    STRING = auto()
    ARRAY = auto()
    MAP = auto()
    TAG = auto()
    FALSE = auto()
    TRUE = auto()
    NULL = auto()
    DOUBLE = auto()
    DATE_TIME = auto()
    URL = auto()
    REGULAR_EXPRESSION = auto()
    UUID = auto()
    INVALID = auto()


_TYPE_TABLE: tuple[tuple[type | tuple[type, ...], CborType], ...] = (
    (Tagged, CborType.TAG),
    (int, CborType.INTEGER),
    (float, CborType.DOUBLE),
    (str, CborType.STRING),
    ((bytes, bytearray, memoryview), CborType.BYTE_ARRAY),
    ((list, tuple), CborType.ARRAY),
    (dict, CborType.MAP),
    (datetime.datetime, CborType.DATE_TIME),
    (uuid.UUID, CborType.UUID),
    (re.Pattern, CborType.REGULAR_EXPRESSION),
)


def cbor_type_of(value) -> CborType:
    """Return the CBOR kind of a Python value."""
    if value is None:
        return CborType.NULL
    if value is True:
        return CborType.TRUE
    if value is False:
        return CborType.FALSE
    for python_type, cbor_type in _TYPE_TABLE:
        if isinstance(value, python_type):
            return cbor_type
    return CborType.INVALID


class Priority(IntEnum):
    """Order in which converters are tried; higher goes first."""

    EXTREMELY_LOW = -3
    VERY_LOW = -2
    LOW = -1
    STANDARD = 0
    HIGH = 1
    VERY_HIGH = 2
    EXTREMELY_HIGH = 3


class DeserializationCapability(IntEnum):
    """Result of asking a converter whether it can deserialize some data."""

    POSITIVE = 1
    GUESSED = 2
    NEGATIVE = -1
    WRONG_TAG = -2


_JSON_AS_STRING = frozenset(
    {
        CborType.BYTE_ARRAY,
        CborType.DATE_TIME,
        CborType.URL,
        CborType.REGULAR_EXPRESSION,
        CborType.UUID,
    }
)


def _json_equivalents(types) -> list[CborType]:
    mapped = [CborType.STRING if t in _JSON_AS_STRING else t for t in types]
    has_int = CborType.INTEGER in mapped
    has_double = CborType.DOUBLE in mapped
    if has_double and not has_int:
        mapped.append(CborType.INTEGER)
    if has_int and not has_double:
        mapped.append(CborType.DOUBLE)
    return mapped


class TypeConverter(ABC):
    """Converts values of particular types to and from CBOR data.

    The helper is the serializer that owns the converter. It must offer a
    ``json_mode`` attribute and ``get_property``, ``type_tag``,
    ``serialize_subtype`` and ``deserialize_subtype`` methods.

    Subclasses may set ``accepted_tags`` (type id to the tags accepted for it)
    and ``tag_guesses`` (tag to the type id that data with that tag implies).
    """

    priority: int = Priority.STANDARD
    helper: Any = None
    accepted_tags: Mapping[Any, tuple] = MappingProxyType({})
    tag_guesses: Mapping[int, Any] = MappingProxyType({})

    @property
    def name(self) -> str:
        return type(self).__name__

    def _active_helper(self):
        if self.helper is None:
            raise RuntimeError(f"converter {self.name} has no serialization helper")
        return self.helper

    @abstractmethod
    def can_convert(self, type_id) -> bool:
        """Return whether values of this type are handled."""

    @abstractmethod
    def allowed_cbor_types(self, type_id, tag) -> list[CborType]:
        """Return the CBOR kinds accepted for the type and tag."""

    def allowed_cbor_tags(self, type_id) -> list:
        """Return the tags accepted for the type; empty means no restriction."""
        try:
            return list(self.accepted_tags.get(type_id, ()))
        except TypeError:
            return []

    def guess_type(self, tag, cbor_type):
        """Return the type id implied by tag and kind, or None."""
        if tag not in self.tag_guesses:
            return None
        guessed = self.tag_guesses[tag]
        if cbor_type in self.allowed_cbor_types(guessed, tag):
            return guessed
        return None

    def can_deserialize(self, type_id, tag, cbor_type):
        """Check the data; return (capability, type id) with a guessed id if any."""
        helper = self._active_helper()
        as_json = bool(helper.json_mode)
        flags = helper.get_property("validation_flags") or ValidationFlag.STANDARD_VALIDATION
        strict = ValidationFlag.STRICT_BASIC_TYPES in flags

        if type_id is not None:
            if not self.can_convert(type_id):
                return DeserializationCapability.NEGATIVE, type_id

            if not as_json and (strict or tag is not None):
                tags = list(self.allowed_cbor_tags(type_id))
                override = helper.type_tag(type_id)
                if override is not None:
                    tags.append(override)
                if tags:
                    if tag not in tags:
                        return DeserializationCapability.WRONG_TAG, type_id
                elif strict and tag is not None:
                    return DeserializationCapability.WRONG_TAG, type_id

            types = list(self.allowed_cbor_types(type_id, tag))
            if as_json:
                types = _json_equivalents(types)
            if cbor_type not in types:
                return DeserializationCapability.NEGATIVE, type_id
            return DeserializationCapability.POSITIVE, type_id

        if not as_json and tag is not None:
            guessed = self.guess_type(tag, cbor_type)
            if guessed is not None:
                return DeserializationCapability.GUESSED, guessed
        return DeserializationCapability.NEGATIVE, type_id

    @abstractmethod
    def serialize(self, type_id, value):
        """Convert a value of the given type to CBOR data."""

    @abstractmethod
    def deserialize_cbor(self, type_id, value, parent):
        """Convert CBOR data back to a value of the given type."""

    def deserialize_json(self, type_id, value, parent):
        """Convert data that came from JSON; defaults to the CBOR path."""
        return self.deserialize_cbor(type_id, value, parent)


class TypeConverterFactory(ABC):
    """Creates converters for every serializer instance."""

    @abstractmethod
    def create_converter(self) -> TypeConverter | None:
        """Return a new converter, or None."""


class StandardConverterFactory(TypeConverterFactory):
    """Factory creating instances of one converter class."""

    def __init__(self, converter_class, priority=None):
        self.converter_class = converter_class
        self.priority = priority

    def create_converter(self) -> TypeConverter:
        converter = self.converter_class()
        if self.priority is not None:
            converter.priority = self.priority
        return converter