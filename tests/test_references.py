"""Tests for structured checkout references."""

import pytest

from coursepay.errors import InvalidReference
from coursepay.services.references import CheckoutReference

COURSE_ID = "0b8f7c52-3c1a-4c55-9d62-2f0a3c5e6d11"
BUYER_ID = "5f6d4e3c-2b1a-4f9e-8d7c-6b5a4e3d2c1b"


def test_new_reference_parses_back():
    ref = CheckoutReference.new(COURSE_ID, BUYER_ID)
    parsed = CheckoutReference.parse(str(ref))
    assert parsed == ref
    assert str(ref).startswith(f"crs.{COURSE_ID}.{BUYER_ID}.")


def test_new_references_are_unique():
    refs = {str(CheckoutReference.new(COURSE_ID, BUYER_ID)) for _ in range(50)}
    assert len(refs) == 50


@pytest.mark.parametrize("value", [
    None,
    "",
    "T685312322670591",
    f"crs.{COURSE_ID}.{BUYER_ID}",
    f"crs.{COURSE_ID}.{BUYER_ID}.short",
    f"crs.not-a-uuid.{BUYER_ID}.1700000000000abcd1234",
    f"xyz.{COURSE_ID}.{BUYER_ID}.1700000000000abcd1234",
    f"crs.{COURSE_ID}.{BUYER_ID}.1700000000000abcd1234.extra",
    f"crs.{COURSE_ID}.{BUYER_ID}.1700000000000abcd1234\n",
    f" crs.{COURSE_ID}.{BUYER_ID}.1700000000000abcd1234",
])
def test_malformed_references_rejected(value):
    with pytest.raises(InvalidReference):
        CheckoutReference.parse(value)
