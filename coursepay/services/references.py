"""Checkout references.

A reference identifies one checkout attempt and is the only key the
processor, the webhook and the buyer's landing page share. It carries the
course id and buyer id as explicit fields:

    crs.<course_id>.<buyer_id>.<nonce>

Ids are UUID strings; the nonce is a millisecond timestamp plus random hex,
so every attempt gets a fresh reference even for the same course/buyer.
Paystack accepts alphanumerics, "-", "." and "=" in references.
"""

import re
import secrets
import time
from dataclasses import dataclass

from coursepay.errors import InvalidReference

PREFIX = "crs"

_UUID = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
_REFERENCE_RE = re.compile(
    rf"{PREFIX}\.(?P<course_id>{_UUID})\.(?P<buyer_id>{_UUID})\.(?P<nonce>[0-9a-zA-Z]{{8,64}})"
)


@dataclass(frozen=True)
class CheckoutReference:
    course_id: str
    buyer_id: str
    nonce: str

    @classmethod
    def new(cls, course_id, buyer_id):
        nonce = f"{int(time.time() * 1000)}{secrets.token_hex(4)}"
        return cls(course_id=str(course_id), buyer_id=str(buyer_id), nonce=nonce)

    @classmethod
    def parse(cls, value):
        """Parse a reference string. Raises InvalidReference when malformed."""
        match = _REFERENCE_RE.fullmatch(value or "")
        if match is None:
            raise InvalidReference(f"Malformed payment reference: {value!r}")
        return cls(
            course_id=match.group("course_id"),
            buyer_id=match.group("buyer_id"),
            nonce=match.group("nonce"),
        )

    def __str__(self):
        return f"{PREFIX}.{self.course_id}.{self.buyer_id}.{self.nonce}"
