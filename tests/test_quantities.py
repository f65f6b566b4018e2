import pytest

from rollwatch.quantities import (
    SUFFIXES,
    MalformedQuantity,
    format_memory,
    format_milli_cpu,
    normalize_cpu,
    normalize_memory,
    parse_cpu_as_milli_cpus,
    parse_memory,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1234", 1234),
        ("0", 0),
        ("1K", 1000),
        ("1Ki", 1024),
        ("512Ki", 512 * 1024),
        ("1e6", 1_000_000),
        ("0K", 0),
        ("0e6", 0),
        ("500Mi", 524288000),
        ("1.1Gi", 1181116006),
        ("1.1G", 1100000000),
        ("1.1e3K", 1100000),
        ("1E", 10**18),
        ("1Ei", 1024**6),
        ("2.5e2", 250),
    ],
)
def test_parse_memory(text, expected):
    assert parse_memory(text) == expected


@pytest.mark.parametrize("text", ["-1K", "K", "1Kb", "foo", "1.1x", "1.1e-1", "", "1.5", "1 Ki", "1k"])
def test_parse_memory_rejects(text):
    with pytest.raises(MalformedQuantity):
        parse_memory(text)


def test_malformed_quantity_is_a_value_error():
    with pytest.raises(ValueError):
        parse_memory("1Kb")


def test_fractional_binary_suffix_truncates_not_rounds():
    # 1.2 * 2**30 = 1288490188.8
    assert parse_memory("1.2Gi") == 1288490188


def test_suffix_table_is_read_only():
    with pytest.raises(TypeError):
        SUFFIXES["Zi"] = 1  # type: ignore[index]


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, "0"),
        (1, "1"),
        (1023, "1023"),
        (1024, "1024"),
        (2048 * 1024, "2097152"),
        (1_000_000_000_000_000_000, "1000000000000000000"),
    ],
)
def test_format_memory(value, expected):
    assert format_memory(value) == expected


def test_format_memory_rejects_negative():
    with pytest.raises(ValueError):
        format_memory(-1)


@pytest.mark.parametrize("value", [0, 1, 999, 1024, 524288000, 1181116006, 2**62])
def test_memory_canonical_integer_survives_format_and_parse(value):
    assert parse_memory(format_memory(value)) == value


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1K", "1000"),
        ("1Ki", "1024"),
        ("1M", "1000000"),
        ("1Mi", "1048576"),
        ("12345", "12345"),
        ("500Mi", "524288000"),
        ("1.1Gi", "1181116006"),
        ("1.2Gi", "1288490188"),
    ],
)
def test_normalize_memory(text, expected):
    assert normalize_memory(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("100000", 100000000),
        ("1", 1000),
        ("1m", 1),
        ("0.5", 500),
        ("0", 0),
        ("0m", 0),
        ("0.0", 0),
        ("0.000001", 0),
        ("2.0005", 2000),
    ],
)
def test_parse_cpu(text, expected):
    assert parse_cpu_as_milli_cpus(text) == expected


@pytest.mark.parametrize("text", ["0.0m", "0.1m", "", "-1", "1Ki", "m", "1mm", "abc"])
def test_parse_cpu_rejects(text):
    with pytest.raises(MalformedQuantity):
        parse_cpu_as_milli_cpus(text)


@pytest.mark.parametrize("value,expected", [(1000, "1"), (500, "500m"), (1, "1m"), (0, "0"), (2500, "2500m"), (3000, "3")])
def test_format_milli_cpu(value, expected):
    assert format_milli_cpu(value) == expected


@pytest.mark.parametrize("value", [0, 1, 500, 999, 1000, 1001, 64000])
def test_milli_cpu_survives_format_and_parse(value):
    assert parse_cpu_as_milli_cpus(format_milli_cpu(value)) == value
    assert format_milli_cpu(parse_cpu_as_milli_cpus(format_milli_cpu(value))) == format_milli_cpu(value)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1", "1"),
        ("1000m", "1"),
        ("500m", "500m"),
        ("0.5", "500m"),
        ("0.1", "100m"),
        ("0.01", "10m"),
        ("0.001", "1m"),
    ],
)
def test_normalize_cpu(text, expected):
    assert normalize_cpu(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0.99999999999999999999999999999Ki", 1023),
        ("1234567890123456789012345678Ki", 1234567890123456789012345678 * 1024),
        ("1.000000000000000000000000000001Ei", 1024**6),
        ("123456789012345678901234567890123", 123456789012345678901234567890123),
    ],
)
def test_parse_memory_is_exact_beyond_float_and_decimal_precision(text, expected):
    assert parse_memory(text) == expected


def test_parse_cpu_truncates_long_fractions():
    assert parse_cpu_as_milli_cpus("0.9999999999999999999999999999999") == 999
    assert parse_cpu_as_milli_cpus("12345678901234567890123456789.0019") == 12345678901234567890123456789001


@pytest.mark.parametrize("text", ["1e1000000K", "1e100000000", "1e31", "1e-31K", "1" * 65, "1e" + "0" * 4 + "1000"])
def test_parse_memory_rejects_out_of_range(text):
    with pytest.raises(MalformedQuantity):
        parse_memory(text)


@pytest.mark.parametrize("text", ["1" * 65, "1" * 65 + "m", "0." + "0" * 70 + "1"])
def test_parse_cpu_rejects_too_many_digits(text):
    with pytest.raises(MalformedQuantity):
        parse_cpu_as_milli_cpus(text)
