import pytest

from varserializer.options import MultiMapMode, Polymorphing, ValidationFlag


def test_basic_flag_values():
    assert ValidationFlag(0x00) is ValidationFlag.STANDARD_VALIDATION
    assert ValidationFlag(0x01) is ValidationFlag.NO_EXTRA_PROPERTIES
    assert ValidationFlag(0x02) is ValidationFlag.ALL_PROPERTIES
    assert ValidationFlag(0x04) is ValidationFlag.STRICT_BASIC_TYPES


def test_full_property_validation_is_combination():
    combined = ValidationFlag(0x01 | 0x02)
    assert combined == ValidationFlag.FULL_PROPERTY_VALIDATION
    assert ValidationFlag(0x04) not in ValidationFlag.FULL_PROPERTY_VALIDATION


def test_full_validation_contains_everything():
    full = ValidationFlag(0x07)
    assert full == ValidationFlag.FULL_VALIDATION
    for flag in (
        ValidationFlag.NO_EXTRA_PROPERTIES,
        ValidationFlag.ALL_PROPERTIES,
        ValidationFlag.STRICT_BASIC_TYPES,
    ):
        assert flag in full
    assert full == ValidationFlag.FULL_PROPERTY_VALIDATION | ValidationFlag.STRICT_BASIC_TYPES


def test_standard_validation_is_empty():
    empty = ValidationFlag(0)
    assert not empty
    assert ValidationFlag.STRICT_BASIC_TYPES not in empty


def test_flag_lookup_by_name():
    assert ValidationFlag(4) is ValidationFlag["STRICT_BASIC_TYPES"]


@pytest.mark.parametrize(
    "enum_class, names",
    [
        (Polymorphing, ["DISABLED", "ENABLED", "FORCED"]),
        (MultiMapMode, ["MAP", "LIST", "DENSE_MAP"]),
    ],
)
def test_enum_members_in_order(enum_class, names):
    assert [member.name for member in enum_class] == names


def test_enum_members_are_distinct():
    assert Polymorphing(Polymorphing.ENABLED.value) is Polymorphing.ENABLED
    assert MultiMapMode(MultiMapMode.DENSE_MAP.value) is MultiMapMode.DENSE_MAP
    assert len({member.value for member in Polymorphing}) == len(list(Polymorphing))
    assert MultiMapMode(MultiMapMode.MAP.value) != MultiMapMode.DENSE_MAP