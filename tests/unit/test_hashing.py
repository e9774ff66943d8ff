"""
Tests for canonical JSON and content hashing.

The period lock hash and every export content hash go through these
helpers, so their output must not depend on key order or number spelling.
"""

from datetime import date
from decimal import Decimal
from enum import Enum

import pytest

from close_kernel.utils.hashing import canonicalize_json, hash_payload, sha256_hex


class _Color(str, Enum):
    RED = "RED"


class TestCanonicalJson:

    def test_keys_sorted_and_compact(self):
        assert canonicalize_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_keys_sorted_by_code_point(self):
        assert canonicalize_json({"a": 1, "B": 2, "_": 3}) == '{"B":2,"_":3,"a":1}'

    def test_nested_objects_sorted(self):
        assert canonicalize_json({"z": {"y": 1, "x": 2}}) == '{"z":{"x":2,"y":1}}'

    def test_arrays_keep_order(self):
        assert canonicalize_json([3, 1, 2]) == "[3,1,2]"

    def test_integral_float_is_int(self):
        assert canonicalize_json({"v": 21.0}) == canonicalize_json({"v": 21})

    def test_fractional_float_kept(self):
        assert canonicalize_json(5.5) == "5.5"

    def test_non_ascii_unescaped(self):
        assert canonicalize_json({"name": "Café"}) == '{"name":"Café"}'

    def test_scalars(self):
        assert canonicalize_json([None, True, "x"]) == '[null,true,"x"]'

    def test_enum_date_decimal(self):
        out = canonicalize_json({"c": _Color.RED, "d": date(2026, 1, 31), "r": Decimal("5.50")})
        assert out == '{"c":"RED","d":"2026-01-31","r":5.5}'

    def test_decimal_hashes_like_number(self):
        assert hash_payload({"rate": Decimal("5.50")}) == hash_payload({"rate": 5.5})
        assert canonicalize_json({"rate": Decimal("21.00")}) == canonicalize_json({"rate": 21})

    def test_non_finite_decimal_rejected(self):
        with pytest.raises(ValueError):
            canonicalize_json(Decimal("NaN"))

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            canonicalize_json(float("nan"))

    def test_non_string_key_rejected(self):
        with pytest.raises(TypeError):
            canonicalize_json({1: "x"})

    def test_unsupported_type_rejected(self):
        with pytest.raises(TypeError):
            canonicalize_json({"s": {1, 2}})


class TestHashing:

    def test_sha256_of_text_matches_bytes(self):
        assert sha256_hex("abc") == sha256_hex(b"abc")
        assert sha256_hex("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_hash_ignores_key_order(self):
        assert hash_payload({"a": 1, "b": 2}) == hash_payload({"b": 2, "a": 1})

    def test_hash_changes_with_content(self):
        assert hash_payload({"a": 1}) != hash_payload({"a": 2})

    def test_hash_is_64_hex_chars(self):
        digest = hash_payload({"a": 1})
        assert len(digest) == 64
        int(digest, 16)
