"""Tests for the value codec."""

from datetime import datetime, timedelta, timezone

import pytest

from typed_sheets.codec import (
    deserialize,
    force_text,
    format_datetime,
    get_codec,
    make_validator,
    parse_datetime,
    parse_number,
    serialize,
    validate,
)
from typed_sheets.errors import FieldValidationError, UnknownKindError
from typed_sheets.types import FieldKind


class TestDatetimeFormat:
    """Tests for the fixed ``YYYY-MM-DD HH:MM:SS.mmm`` layout."""

    def test_format_aware(self):
        value = datetime(2024, 3, 7, 9, 5, 2, 45_000, tzinfo=timezone.utc)
        assert format_datetime(value) == "2024-03-07 09:05:02.045"

    def test_format_converts_to_utc(self):
        """Aware datetimes in other zones are shifted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 1, 1, 1, 30, 0, tzinfo=plus_two)
        assert format_datetime(value) == "2023-12-31 23:30:00.000"

    def test_format_naive_is_utc(self):
        assert format_datetime(datetime(2024, 12, 31, 23, 59, 59)) == "2024-12-31 23:59:59.000"

    def test_format_truncates_microseconds(self):
        value = datetime(2024, 1, 1, 0, 0, 0, 999_999, tzinfo=timezone.utc)
        assert format_datetime(value) == "2024-01-01 00:00:00.999"

    def test_format_24_hour_clock(self):
        assert format_datetime(datetime(2024, 1, 1, 13, 0, 0)) == "2024-01-01 13:00:00.000"
        assert format_datetime(datetime(2024, 1, 1, 0, 0, 0)) == "2024-01-01 00:00:00.000"

    def test_parse(self):
        parsed = parse_datetime("2024-03-07 09:05:02.045")
        assert parsed == datetime(2024, 3, 7, 9, 5, 2, 45_000, tzinfo=timezone.utc)
        assert parsed.tzinfo is timezone.utc

    def test_parse_rejects_other_layouts(self):
        """Anything but the exact layout parses to None."""
        assert parse_datetime("2024-03-07 09:05:02") is None
        assert parse_datetime("2024-03-07T09:05:02.045") is None
        assert parse_datetime("2024/03/07 09:05:02.045") is None
        assert parse_datetime("2024-03-07 09:05:02.045Z") is None
        assert parse_datetime(" 2024-03-07 09:05:02.045") is None
        assert parse_datetime("") is None
        assert parse_datetime(45123.5) is None

    def test_parse_impossible_date(self):
        assert parse_datetime("2024-02-30 00:00:00.000") is None

    @pytest.mark.parametrize(
        "value",
        [
            datetime(1970, 1, 1, tzinfo=timezone.utc),
            datetime(2000, 2, 29, 12, 0, 0, 1_000, tzinfo=timezone.utc),
            datetime(2038, 1, 19, 3, 14, 7, 999_000, tzinfo=timezone.utc),
        ],
    )
    def test_round_trip(self, value):
        assert deserialize(serialize(value, FieldKind.DATETIME), FieldKind.DATETIME) == value


class TestBoolean:
    """Tests for TRUE/FALSE encoding."""

    def test_serialize(self):
        assert serialize(True, FieldKind.BOOLEAN) == "TRUE"
        assert serialize(False, FieldKind.BOOLEAN) == "FALSE"

    def test_deserialize(self):
        assert deserialize("TRUE", FieldKind.BOOLEAN) is True
        assert deserialize("FALSE", FieldKind.BOOLEAN) is False

    def test_deserialize_passes_real_booleans(self):
        assert deserialize(True, FieldKind.BOOLEAN) is True

    def test_unrecognized_is_missing(self):
        """Unrecognized tokens decode to None rather than raising."""
        assert deserialize("true", FieldKind.BOOLEAN) is None
        assert deserialize("yes", FieldKind.BOOLEAN) is None
        assert deserialize("1", FieldKind.BOOLEAN) is None

    @pytest.mark.parametrize("value", [True, False])
    def test_round_trip(self, value):
        assert deserialize(serialize(value, FieldKind.BOOLEAN), FieldKind.BOOLEAN) is value


class TestNumberAndString:
    """Tests for the pass-through kinds."""

    def test_string_identity(self):
        assert serialize("Ahmed", FieldKind.STRING) == "Ahmed"
        assert deserialize("Ahmed", FieldKind.STRING) == "Ahmed"

    def test_number_identity(self):
        assert serialize(30, FieldKind.NUMBER) == 30
        assert serialize(2.5, FieldKind.NUMBER) == 2.5
        assert deserialize(30, FieldKind.NUMBER) == 30

    def test_number_from_text(self):
        assert deserialize("30", FieldKind.NUMBER) == 30
        assert isinstance(deserialize("30", FieldKind.NUMBER), int)
        assert deserialize("-2.5", FieldKind.NUMBER) == -2.5
        assert deserialize("1e3", FieldKind.NUMBER) == 1000.0

    def test_number_unparseable_is_missing(self):
        assert deserialize("thirty", FieldKind.NUMBER) is None

    def test_parse_number(self):
        assert parse_number(" 42 ") == 42
        assert parse_number(".5") == 0.5
        assert parse_number(True) is None
        assert parse_number("") is None
        assert parse_number(None) is None


class TestEmptyCells:
    """Empty and missing cells decode to None for every kind."""

    @pytest.mark.parametrize("kind", list(FieldKind))
    def test_none(self, kind):
        assert deserialize(None, kind) is None
        assert deserialize(None, kind, optional=True) is None

    @pytest.mark.parametrize("kind", list(FieldKind))
    def test_empty_string(self, kind):
        assert deserialize("", kind) is None

    @pytest.mark.parametrize("kind", list(FieldKind))
    def test_serialize_none(self, kind):
        assert serialize(None, kind) is None


class TestValidate:
    """Tests for the per-kind input validators."""

    def test_accepts_matching_values(self):
        now = datetime.now(timezone.utc)
        assert validate("x", FieldKind.STRING) == "x"
        assert validate(3, FieldKind.NUMBER) == 3
        assert validate(3.5, FieldKind.NUMBER) == 3.5
        assert validate(now, FieldKind.DATETIME) is now
        assert validate(False, FieldKind.BOOLEAN) is False

    def test_number_coerces_numeric_text(self):
        assert validate("30", FieldKind.NUMBER) == 30
        assert validate("2.25", FieldKind.NUMBER) == 2.25

    @pytest.mark.parametrize(
        "kind,value",
        [
            (FieldKind.STRING, 5),
            (FieldKind.NUMBER, "abc"),
            (FieldKind.NUMBER, True),
            (FieldKind.NUMBER, [1]),
            (FieldKind.DATETIME, "2024-01-01 00:00:00.000"),
            (FieldKind.BOOLEAN, "TRUE"),
            (FieldKind.BOOLEAN, 1),
        ],
    )
    def test_rejects(self, kind, value):
        with pytest.raises(FieldValidationError):
            validate(value, kind, field_name="f")

    def test_error_names_field(self):
        with pytest.raises(FieldValidationError, match="'age'") as exc_info:
            validate("old", FieldKind.NUMBER, field_name="age")
        assert exc_info.value.field == "age"

    def test_none_requires_optional(self):
        assert validate(None, FieldKind.STRING, optional=True) is None
        with pytest.raises(FieldValidationError, match="required"):
            validate(None, FieldKind.STRING, optional=False, field_name="name")

    def test_make_validator(self):
        validator = make_validator(FieldKind.BOOLEAN, optional=False, field_name="active")
        assert validator(True) is True
        with pytest.raises(FieldValidationError):
            validator("TRUE")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf"), "1e999"])
    def test_number_must_be_finite(self, value):
        with pytest.raises(FieldValidationError, match="finite"):
            validate(value, FieldKind.NUMBER, field_name="age")


class TestForceText:
    """Tests for the literal-text marker used on USER_ENTERED writes."""

    def test_prefixes_text(self):
        assert force_text("=1+1") == "'=1+1"
        assert force_text("007") == "'007"
        assert force_text("'x") == "''x"

    def test_leaves_other_cells(self):
        assert force_text("") == ""
        assert force_text(None) is None
        assert force_text(30) == 30


class TestUnknownKind:
    """Kinds outside the closed set are rejected."""

    def test_get_codec(self):
        with pytest.raises(UnknownKindError):
            get_codec("DECIMAL")

    def test_serialize(self):
        with pytest.raises(UnknownKindError):
            serialize(1, "DECIMAL")

    def test_kind_names_accepted(self):
        assert serialize(True, "BOOLEAN") == "TRUE"
