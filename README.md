# varserializer

The core of a converter-based serializer. `varserializer.base.SerializerBase`
picks a `TypeConverter` for each value and turns the value into CBOR-style
Python data. Deserializing works the same way in reverse. A serializer runs
either in CBOR mode or in JSON mode, which you choose with
`SerializerBase(json_mode=...)`.

Type ids are usually Python classes such as `int`, `str` or `uuid.UUID`, and
`None` stands for an unknown type. Any other hashable value can serve as a
type id when a converter handles it.

## Installation

```
pip install varserializer
```

## Modules

- `varserializer.options` defines the option enums:
  - `ValidationFlag` is a `Flag`. Its members are `STANDARD_VALIDATION`,
    `NO_EXTRA_PROPERTIES`, `ALL_PROPERTIES`, `STRICT_BASIC_TYPES`,
    `FULL_PROPERTY_VALIDATION` and `FULL_VALIDATION`.
  - `Polymorphing` has the members `DISABLED`, `ENABLED` and `FORCED`.
  - `MultiMapMode` has the members `MAP`, `LIST` and `DENSE_MAP`.
- `varserializer.errors` defines the errors and the property trace:
  - The errors are `SerializerError` and its subclasses `SerializationError`
    and `DeserializationError`. Each error stores in `property_trace` the
    trace that was active when it was raised. The trace is a list of
    `(trace hint, type name)` pairs.
  - `ExceptionContext` is a context manager that pushes one entry onto the
    trace of the current thread.
  - `current_trace()` and `current_depth()` inspect the trace.
- `varserializer.converter` holds the converter machinery:
  - `Tagged(tag, value)` represents a tagged CBOR value.
  - `CborType` lists the CBOR kinds, and `cbor_type_of(value)` classifies a
    Python value as one of them.
  - `Priority` sets the order in which converters are tried.
  - `DeserializationCapability` has the members `POSITIVE`, `GUESSED`,
    `NEGATIVE` and `WRONG_TAG`.
  - `TypeConverter` is the abstract converter base class.
  - `TypeConverterFactory` is the abstract factory base class, and
    `StandardConverterFactory` is its standard implementation.
- `varserializer.base` holds `SerializerBase`.

## Options

These options are attributes of `SerializerBase`. You can also read and change
them by name with `get_property` and `set_property`. A name that is not one of
the options is stored as a free-form dynamic property, and `get_property`
returns `None` for a name that has not been set.

| option | default |
| --- | --- |
| `allow_default_null` | `False` |
| `keep_object_name` | `False` |
| `enum_as_string` | `False` |
| `version_as_string` | `False` |
| `date_as_timestamp` | `False` |
| `use_bcp47_locale` | `True` |
| `validation_flags` | `ValidationFlag.STANDARD_VALIDATION` |
| `polymorphing` | `Polymorphing.ENABLED` |
| `multi_map_mode` | `MultiMapMode.MAP` |
| `ignore_stored_attribute` | `False` |

`subscribe(callback)` calls `callback(name, value)` each time an option
actually changes. It returns a function that removes the subscription.

Within this package, only `allow_default_null` and the `STRICT_BASIC_TYPES`
flag of `validation_flags` change how `SerializerBase` behaves. The other
options are stored so that converters can read them through their helper.

## Converters

To write a converter, subclass `TypeConverter` and implement these methods:

- `can_convert`
- `allowed_cbor_types`
- `serialize`
- `deserialize_cbor`

`deserialize_json` calls `deserialize_cbor` unless you override it.

You can also set two optional class attributes:

- `accepted_tags` maps a type id to the tags accepted for it.
- `tag_guesses` maps a tag to the type id it implies.

`can_deserialize` uses these attributes together with the helper's
`json_mode` and `validation_flags`. It returns a pair of a
`DeserializationCapability` and a type id.

To use a converter on one serializer, add it with
`add_type_converter(converter)`. To give every serializer a converter, call
`SerializerBase.add_converter_factory(factory)`. Converters are tried from the
highest priority down and are cached per type id.

## Serializing and deserializing

- `serialize_variant(type_id, value)` runs the matching converter. If no
  converter matches, the value passes through unchanged. A tag listed for the
  type in the class attribute `type_tags` is then forced onto the result.
- `deserialize_variant(type_id, value, parent=None, skip_conversion=False)`
  works in this order:
  1. It picks a converter. When the type is unknown it tries the types listed
     for the value's tag, and it may use a converter that reports `GUESSED`.
  2. If no converter is found, it decodes well-known CBOR tags itself. These
     are date/time, base64 strings, regular expressions and UUIDs.
  3. It converts the result to the requested type.
  4. A failed conversion raises `DeserializationError`. The exception is a
     `None` value when `allow_default_null` is set; in that case the type's
     default value is returned instead.
- With `ValidationFlag.STRICT_BASIC_TYPES`, basic values must already be of
  the requested kind. For example, a string is not accepted for `int`.
- `serialize_subtype` and `deserialize_subtype` do the same work inside an
  `ExceptionContext`. An error raised by a nested value therefore carries its
  property trace.
- `SerializerBase.register_extractor(type_id, extractor)` stores an extractor
  for all serializers. `extractor(type_id)` returns the stored extractor.

## Example

```python
from varserializer.base import SerializerBase
from varserializer.converter import TypeConverter, CborType, Priority
from varserializer.errors import DeserializationError
from varserializer.options import ValidationFlag

class UpperConverter(TypeConverter):
    priority = Priority.HIGH

    def can_convert(self, type_id):
        return type_id == "shout"

    def allowed_cbor_types(self, type_id, tag):
        return [CborType.STRING]

    def serialize(self, type_id, value):
        return value.upper()

    def deserialize_cbor(self, type_id, value, parent):
        return value.lower()

serializer = SerializerBase(json_mode=False)
serializer.add_type_converter(UpperConverter())
assert serializer.serialize_variant("shout", "hello") == "HELLO"
assert serializer.deserialize_variant("shout", "HELLO") == "hello"

assert serializer.deserialize_variant(int, "2") == 2
serializer.validation_flags = ValidationFlag.STRICT_BASIC_TYPES
try:
    serializer.deserialize_variant(int, "2")
except DeserializationError as error:
    print(error)
```

## What it does not do

This package is the serializer core only. It does not encode to or decode from
CBOR bytes or JSON text, and it does not read or write files or streams. It
ships no built-in converters for containers, objects, enums, dates, versions
or other structured types. Without converters, values pass through as plain
Python data. Any such handling has to come from converters that you add.

## Tests

```
pip install -e .[test]
pytest
```