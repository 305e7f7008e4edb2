"""
Unit tests for phone number normalization
"""

import pytest

from zyra.services.phone import normalize_phone


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0712345678", "+254712345678"),
        ("254712345678", "+254712345678"),
        ("+254712345678", "+254712345678"),
        ("712345678", "+254712345678"),
        ("+254 712-345 678", "+254712345678"),
        ("(0712) 345 678", "+254712345678"),
    ],
)
def test_common_formats_normalize_to_canonical(raw, expected):
    """Local, international and formatted inputs end up in +254 form"""
    assert normalize_phone(raw) == expected


def test_normalization_is_idempotent():
    """Normalizing a canonical number returns it unchanged"""
    once = normalize_phone("0712345678")
    assert normalize_phone(once) == once


def test_empty_input_yields_bare_prefix():
    """Empty input is not rejected; it becomes the bare country prefix"""
    assert normalize_phone("") == "+254"
    assert normalize_phone(None) == "+254"
