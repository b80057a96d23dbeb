"""Base serializer: options, converter lookup and handling of basic values."""

from __future__ import annotations

import base64
import datetime
import logging
import re
import threading
import uuid
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable

from .converter import (
    DeserializationCapability,
    Tagged,
    TypeConverter,
    TypeConverterFactory,
    cbor_type_of,
)
from .errors import DeserializationError, ExceptionContext
from .options import MultiMapMode, Polymorphing, ValidationFlag

_log = logging.getLogger(__name__)

NoneType = type(None)

_TAG_DATETIME_STRING = 0
_TAG_UNIX_TIME = 1
_TAG_EXPECTED_BASE64URL = 21
_TAG_EXPECTED_BASE64 = 22
_TAG_EXPECTED_BASE16 = 23
_TAG_BASE64URL = 33
_TAG_BASE64 = 34
_TAG_REGULAR_EXPRESSION = 35
_TAG_UUID = 37

_FAILED = object()


def _type_name(type_id) -> str:
    if type_id is None:
        return "<unknown>"
    return getattr(type_id, "__name__", str(type_id))


def _is_bool(value) -> bool:
    return value is True or value is False


def _is_integer(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_bytes(value) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def _require(value, kind):
    if not isinstance(value, kind):
        raise TypeError(f"expected {kind}, got {type(value).__name__}")
    return value


def _decode_datetime(value):
    text = _require(value, str)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(text)


def _decode_timestamp(value):
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise TypeError("expected a number")
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)


def _decode_base64url(value):
    text = _require(value, str)
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _decode_base64(value):
    text = _require(value, str)
    return base64.b64decode(text + "=" * (-len(text) % 4))


_TAG_DECODERS: dict[int, Callable[[Any], Any]] = {
    _TAG_DATETIME_STRING: _decode_datetime,
    _TAG_UNIX_TIME: _decode_timestamp,
    _TAG_EXPECTED_BASE64URL: lambda v: bytes(_require(v, (bytes, bytearray, memoryview))),
    _TAG_EXPECTED_BASE64: lambda v: bytes(_require(v, (bytes, bytearray, memoryview))),
    _TAG_EXPECTED_BASE16: lambda v: bytes(_require(v, (bytes, bytearray, memoryview))),
    _TAG_BASE64URL: _decode_base64url,
    _TAG_BASE64: _decode_base64,
    _TAG_REGULAR_EXPRESSION: lambda v: re.compile(_require(v, str)),
    _TAG_UUID: lambda v: uuid.UUID(bytes=bytes(_require(v, (bytes, bytearray, memoryview)))),
}


def _to_variant(value):
    """Decode well known CBOR tags; other values are returned unchanged."""
    if not isinstance(value, Tagged):
        return value
    decoder = _TAG_DECODERS.get(value.tag)
    if decoder is None:
        return value
    try:
        return decoder(value.value)
    except (ValueError, TypeError, re.error):
        return value


def _to_bool(value):
    if isinstance(value, (int, float)):
        return bool(value)
    text = _require(value, str).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_int(value):
    if isinstance(value, (int, float)):
        return int(round(value))
    return int(_require(value, str).strip())


def _to_float(value):
    if isinstance(value, (int, float)):
        return float(value)
    return float(_require(value, str).strip())


def _to_str(value):
    if _is_bool(value):
        return "true" if value else "false"
    if isinstance(value, (int, float, uuid.UUID)):
        return str(value)
    if _is_bytes(value):
        return bytes(value).decode("utf-8")
    if isinstance(value, re.Pattern):
        return value.pattern
    raise TypeError(f"cannot convert {type(value).__name__} to str")


def _to_bytes(value):
    if _is_bytes(value):
        return bytes(value)
    return _require(value, str).encode("utf-8")


def _to_uuid(value):
    if _is_bytes(value):
        return uuid.UUID(bytes=bytes(value))
    return uuid.UUID(_require(value, str))


def _to_pattern(value):
    return re.compile(_require(value, str))


_CONVERSIONS: dict[type, Callable[[Any], Any]] = {
    bool: _to_bool,
    int: _to_int,
    float: _to_float,
    str: _to_str,
    bytes: _to_bytes,
    uuid.UUID: _to_uuid,
    re.Pattern: _to_pattern,
}

_DEFAULTS: dict[Any, Callable[[], Any]] = {
    NoneType: lambda: None,
    uuid.UUID: lambda: uuid.UUID(int=0),
    re.Pattern: lambda: re.compile(""),
}


def _convert(value, target):
    """Convert a deserialized value to the target type, or return _FAILED."""
    if not isinstance(target, type):
        # type ids that are not classes cannot be checked here
        return value
    if target is NoneType:
        return None if value is None else _FAILED
    if value is None:
        return _FAILED
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value
    conversion = _CONVERSIONS.get(target)
    if conversion is None and issubclass(target, Enum):
        conversion = target
    if conversion is None:
        return _FAILED
    try:
        return conversion(value)
    except (ValueError, TypeError, OverflowError, re.error):
        return _FAILED


def _default_for(type_id):
    factory = _DEFAULTS.get(type_id)
    if factory is not None:
        return factory()
    if isinstance(type_id, type):
        try:
            return type_id()
        except (TypeError, ValueError):
            return None
    return None


class _Option:
    """A serializer option that notifies subscribers when it changes."""

    def __init__(self, default):
        self.default = default

    def __set_name__(self, owner, name):
        self.name = name
        self.slot = "_option_" + name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return obj.__dict__.get(self.slot, self.default)

    def __set__(self, obj, value):
        if self.__get__(obj) == value:
            return
        obj.__dict__[self.slot] = value
        obj._notify(self.name, value)


class SerializerBase:
    """Shared machinery of the CBOR and JSON serializers.

    Type ids are usually Python classes; None stands for an unknown type.
    Subclasses may set ``type_tags``, mapping type ids to the CBOR tag forced
    onto their values.
    """

    allow_default_null = _Option(False)
    keep_object_name = _Option(False)
    enum_as_string = _Option(False)
    version_as_string = _Option(False)
    date_as_timestamp = _Option(False)
    use_bcp47_locale = _Option(True)
    validation_flags = _Option(ValidationFlag.STANDARD_VALIDATION)
    polymorphing = _Option(Polymorphing.ENABLED)
    multi_map_mode = _Option(MultiMapMode.MAP)
    ignore_stored_attribute = _Option(False)

    type_tags: Mapping[Any, int] = MappingProxyType({})

    _extractors: dict[Any, Any] = {}
    _extractor_lock = threading.Lock()
    _factories: list[TypeConverterFactory] = []
    _factory_lock = threading.RLock()

    def __init__(self, json_mode=False):
        self.json_mode = json_mode
        self._dynamic: dict[str, Any] = {}
        self._listeners: list[Callable[[str, Any], None]] = []
        self._lock = threading.RLock()
        self._converters: list[TypeConverter] = []
        self._factory_offset = 0
        self._ser_cache: dict[Any, TypeConverter] = {}
        self._deser_cache: dict[Any, TypeConverter] = {}

    # ------------------------------------------------------------ options

    def subscribe(self, callback):
        """Call ``callback(name, value)`` whenever an option changes.

        Returns a function that removes the subscription again.
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, name, value):
        for listener in list(self._listeners):
            listener(name, value)

    @classmethod
    def _is_option(cls, name) -> bool:
        return isinstance(getattr(cls, name, None), _Option)

    def get_property(self, name):
        """Return an option or a dynamic property; None if it is not set."""
        if self._is_option(name):
            return getattr(self, name)
        return self._dynamic.get(name)

    def set_property(self, name, value):
        """Set an option, or store a dynamic property under any other name."""
        if self._is_option(name):
            setattr(self, name, value)
        else:
            self._dynamic[name] = value

    # ------------------------------------------------- extractors and tags

    @classmethod
    def register_extractor(cls, type_id, extractor):
        """Register an extractor for the given type for all serializers."""
        with SerializerBase._extractor_lock:
            SerializerBase._extractors[type_id] = extractor
        _log.debug("Added extractor for type: %s", _type_name(type_id))

    def extractor(self, type_id):
        """Return the extractor registered for the type, or None."""
        with SerializerBase._extractor_lock:
            return SerializerBase._extractors.get(type_id)

    def type_tag(self, type_id):
        """Return the CBOR tag forced onto values of the type, or None."""
        try:
            return self.type_tags.get(type_id)
        except TypeError:
            return None

    def types_for_tag(self, tag):
        """Return the type ids associated with a CBOR tag."""
        return [type_id for type_id, type_tag in self.type_tags.items() if type_tag == tag]

    # --------------------------------------------------------- converters

    @classmethod
    def add_converter_factory(cls, factory):
        """Register a factory providing a converter to every serializer."""
        with SerializerBase._factory_lock:
            SerializerBase._factories.append(factory)
        _log.debug("Added new global converter factory: %r", factory)

    def add_type_converter(self, converter):
        """Add a converter to this serializer only."""
        if converter is None:
            raise ValueError("converter must not be None")
        converter.helper = self
        with self._lock:
            self._insert_sorted(converter)
            self._ser_cache.clear()
            self._deser_cache.clear()
        _log.debug("Added new local converter: %s", converter.name)

    def _insert_sorted(self, converter):
        index = next(
            (pos for pos, existing in enumerate(self._converters) if existing.priority < converter.priority),
            len(self._converters),
        )
        self._converters.insert(index, converter)

    def _update_converter_store(self):
        with SerializerBase._factory_lock:
            pending = SerializerBase._factories[self._factory_offset:]
            if not pending:
                return
            with self._lock:
                for factory in pending:
                    converter = factory.create_converter()
                    if converter is None:
                        continue
                    converter.helper = self
                    self._insert_sorted(converter)
                    self._ser_cache.clear()
                    self._deser_cache.clear()
                    _log.debug("Found and added new global converter: %s", converter.name)
                self._factory_offset += len(pending)

    def _find_ser_converter(self, type_id):
        self._update_converter_store()
        with self._lock:
            cached = self._ser_cache.get(type_id)
            if cached is not None:
                return cached
            for converter in self._converters:
                if converter.can_convert(type_id):
                    self._ser_cache[type_id] = converter
                    return converter
        _log.debug("No serialization converter for type %s", _type_name(type_id))
        return None

    def _find_deser_converter(self, type_id, tag, cbor_type):
        self._update_converter_store()

        if type_id is None and tag is not None:
            for candidate in self.types_for_tag(tag):
                converter, found = self._find_deser_converter(candidate, tag, cbor_type)
                if converter is not None:
                    return converter, found

        wrong_tag = False
        with self._lock:
            cached = self._deser_cache.get(type_id)
            if cached is not None and cached.can_deserialize(type_id, tag, cbor_type)[0] > 0:
                return cached, type_id

            guess = None
            for converter in self._converters:
                capability, test_type = converter.can_deserialize(type_id, tag, cbor_type)
                if capability == DeserializationCapability.POSITIVE:
                    self._deser_cache[type_id] = converter
                    return converter, type_id
                if capability == DeserializationCapability.WRONG_TAG:
                    wrong_tag = True
                elif capability == DeserializationCapability.GUESSED and guess is None:
                    guess = (converter, test_type)

            if guess is not None:
                converter, guessed_type = guess
                self._deser_cache[guessed_type] = converter
                return converter, guessed_type

        if wrong_tag:
            raise DeserializationError(
                f"Found converter able to handle data of type {_type_name(type_id)}, "
                f"but the given CBOR tag {tag} is not convertible to that type."
            )
        _log.debug("No deserialization converter for type %s", _type_name(type_id))
        return None, type_id

    # ------------------------------------------------- (de)serialization

    def serialize_subtype(self, type_id, value, trace_hint=""):
        """Serialize a nested value, recording it in the property trace."""
        with ExceptionContext(_type_name(type_id), trace_hint):
            return self.serialize_variant(type_id, value)

    def deserialize_subtype(self, type_id, value, parent=None, trace_hint=""):
        """Deserialize a nested value, recording it in the property trace."""
        with ExceptionContext(_type_name(type_id), trace_hint):
            return self.deserialize_variant(type_id, value, parent)

    def serialize_variant(self, type_id, value):
        """Serialize a value of the given type to CBOR data."""
        converter = self._find_ser_converter(type_id)
        result = converter.serialize(type_id, value) if converter is not None else value

        tag = self.type_tag(type_id)
        if tag is not None:
            return Tagged(tag, result.value if isinstance(result, Tagged) else result)
        return result

    def deserialize_variant(self, type_id, value, parent=None, skip_conversion=False):
        """Deserialize CBOR data to a value of the given type."""
        tag = value.tag if isinstance(value, Tagged) else None
        inner = value.value if isinstance(value, Tagged) else value
        converter, type_id = self._find_deser_converter(type_id, tag, cbor_type_of(inner))

        if converter is not None:
            if self.json_mode:
                result = converter.deserialize_json(type_id, value, parent)
            else:
                result = converter.deserialize_cbor(type_id, value, parent)
        elif self.json_mode:
            result = self._deserialize_json_value(type_id, value)
        else:
            result = self._deserialize_cbor_value(type_id, value)

        if skip_conversion or type_id is None:
            return result

        allow_convert = not (type_id in (str, bytes) and value is None)
        if allow_convert:
            converted = _convert(result, type_id)
            if converted is not _FAILED:
                return converted
        if self.allow_default_null and value is None:
            return _default_for(type_id)
        raise DeserializationError(
            f"Failed to convert deserialized value of type {type(result).__name__} "
            f"to property type {_type_name(type_id)}. Make sure a converter is registered for it"
        )

    def _strict(self) -> bool:
        flags = self.validation_flags or ValidationFlag.STANDARD_VALIDATION
        return ValidationFlag.STRICT_BASIC_TYPES in flags

    def _deserialize_cbor_value(self, type_id, value):
        if self._strict():
            tag = value.tag if isinstance(value, Tagged) else None
            inner = value.value if isinstance(value, Tagged) else value
            expected_tags: list = []
            failed = False

            if type_id is bool:
                failed = not _is_bool(inner)
            elif type_id is int:
                failed = not _is_integer(inner)
            elif type_id is float:
                failed = not isinstance(inner, float)
            elif type_id is str:
                expected_tags = [None, _TAG_BASE64, _TAG_BASE64URL]
                failed = not isinstance(inner, str)
            elif type_id is bytes:
                expected_tags = [None, _TAG_EXPECTED_BASE64, _TAG_EXPECTED_BASE64URL, _TAG_EXPECTED_BASE16]
                failed = not _is_bytes(inner)
            elif type_id is NoneType:
                failed = inner is not None
            elif type_id is uuid.UUID:
                if not isinstance(value, uuid.UUID):
                    if _is_bytes(inner):
                        expected_tags = [_TAG_UUID]
                    else:
                        failed = True
            elif type_id is re.Pattern:
                if not isinstance(value, re.Pattern):
                    if isinstance(inner, str):
                        expected_tags = [_TAG_REGULAR_EXPRESSION]
                    else:
                        failed = True

            forced_tag = self.type_tag(type_id)
            if forced_tag is not None and forced_tag != tag:
                failed = True
            elif expected_tags and tag not in expected_tags:
                failed = True

            if failed:
                raise DeserializationError(
                    f"Failed to deserialize CBOR-value to type {_type_name(type_id)} "
                    "because the given CBOR-value failed strict validation"
                )
        return _to_variant(value)

    def _deserialize_json_value(self, type_id, value):
        if self._strict():
            failed = False
            if type_id is bool:
                failed = not _is_bool(value)
            elif type_id is int:
                if isinstance(value, float):
                    failed = not value.is_integer()
                else:
                    failed = not _is_integer(value)
            elif type_id in (str, uuid.UUID):
                failed = not isinstance(value, str)
            elif type_id is NoneType:
                failed = value is not None
            elif type_id is float:
                failed = not isinstance(value, float)

            if failed:
                raise DeserializationError(
                    f"Failed to deserialize JSON-value to type {_type_name(type_id)} "
                    "because the given JSON-value failed strict validation"
                )

        if type_id is re.Pattern and isinstance(value, str):
            return re.compile(value)
        return _to_variant(value)