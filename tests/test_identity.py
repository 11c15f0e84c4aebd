from __future__ import annotations

import hashlib

from chatproxy.core.identity import resolve_user_key, short_key


def test_same_inputs_give_same_key():
    first = resolve_user_key("10.0.0.1", "fp-1", "Mozilla/5.0")
    second = resolve_user_key("10.0.0.1", "fp-1", "Mozilla/5.0")
    assert first == second
    assert len(first) == 16
    int(first, 16)


def test_key_is_sha256_prefix_of_joined_fields():
    expected = hashlib.sha256(b"10.0.0.1_fp-1_Mozilla/5.0").hexdigest()[:16]
    assert resolve_user_key("10.0.0.1", "fp-1", "Mozilla/5.0") == expected


def test_only_first_forwarded_address_counts():
    chained = resolve_user_key(" 10.0.0.1 , 172.16.0.9, 192.168.1.1", "fp", "ua")
    assert chained == resolve_user_key("10.0.0.1", "fp", "ua")


def test_missing_fields_default_to_empty():
    expected = hashlib.sha256(b"__").hexdigest()[:16]
    assert resolve_user_key(None, None, None) == expected


def test_distinct_fingerprints_give_distinct_keys():
    assert resolve_user_key("10.0.0.1", "a", "ua") != resolve_user_key("10.0.0.1", "b", "ua")


def test_short_key():
    assert short_key("0123456789abcdef") == "01234567"
