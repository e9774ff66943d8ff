"""Tests for loading and validating the close configuration YAML."""

from decimal import Decimal

import pytest

from close_config import DEFAULT_CONFIG_PATH, get_close_config
from close_config.loader import compute_checksum, parse_close_config


def _write(tmp_path, text, name="close.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:

    def test_bundled_file(self):
        config = get_close_config()
        assert config.config_id == "default"
        assert config.version == 1
        assert config.default_currency == "EUR"
        assert config.as_of_days == (5, 10, 20)
        assert config.vat_buckets == (21, 10, 4, 0)
        assert config.late_arrival_days is None
        assert config.currencies.codes == ("CHF", "EUR", "GBP", "MXN", "USD")
        assert len(config.checksum) == 64

    def test_empty_file_uses_defaults(self, tmp_path):
        config = get_close_config(_write(tmp_path, ""))
        assert config.as_of_days == (5, 10, 20)
        assert config.currencies.is_supported("MXN")

    def test_emits_trace(self, captured_logs):
        config = get_close_config()
        traces = [r for r in captured_logs() if r["message"] == "CLOSE_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["source"] == str(DEFAULT_CONFIG_PATH)
        assert traces[0]["as_of_days"] == [5, 10, 20]


class TestOverrides:

    def test_custom_values(self, tmp_path):
        path = _write(
            tmp_path,
            "config_id: es-smb\n"
            "version: 3\n"
            "default_currency: USD\n"
            "as_of_days: [3, 15]\n"
            "vat_buckets: [16, 8, 0]\n"
            "late_arrival_days: 7\n"
            "currencies:\n"
            "  USD: {decimal_places: 2, name: US Dollar}\n"
            "  JPY: {decimal_places: 0}\n",
        )
        config = get_close_config(path)
        assert config.config_id == "es-smb"
        assert config.version == 3
        assert config.default_currency == "USD"
        assert config.as_of_days == (3, 15)
        assert config.vat_buckets == (16, 8, 0)
        assert config.late_arrival_days == 7
        assert config.currencies.require("JPY").decimal_places == 0
        assert config.currencies.require("JPY").name == "JPY"

    def test_fractional_bucket_kept_exact(self):
        config = parse_close_config({"vat_buckets": [5.5, 10.0]})
        assert config.vat_buckets == (Decimal("5.5"), 10)
        assert isinstance(config.vat_buckets[1], int)


class TestChecksum:

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_value_change_detected(self):
        assert compute_checksum({"as_of_days": [5]}) != compute_checksum({"as_of_days": [6]})

    def test_same_file_same_checksum(self, tmp_path):
        text = "as_of_days: [5, 10]\n"
        first = get_close_config(_write(tmp_path, text, "a.yaml"))
        second = get_close_config(_write(tmp_path, text, "b.yaml"))
        assert first.checksum == second.checksum


class TestValidation:

    @pytest.mark.parametrize(
        "text, key",
        [
            ("as_of_days: [5, -1]\n", "as_of_days"),
            ("as_of_days: 5\n", "as_of_days"),
            ("vat_buckets: [21, 101]\n", "vat_buckets"),
            ("vat_buckets: [veintiuno]\n", "vat_buckets"),
            ("late_arrival_days: -2\n", "late_arrival_days"),
            ("currencies:\n  eur: {}\n", "currencies"),
            ("currencies:\n  EURO: {}\n", "currencies"),
            ("default_currency: JPY\n", "default_currency"),
        ],
    )
    def test_invalid_values(self, tmp_path, text, key):
        with pytest.raises(ValueError, match=key):
            get_close_config(_write(tmp_path, text))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="top level must be a mapping"):
            get_close_config(_write(tmp_path, "- 5\n- 10\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_close_config(tmp_path / "nope.yaml")
