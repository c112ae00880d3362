"""Tests for request signing and nonce generation."""

import base64
import threading

import pytest

from kraken_clients.errors import InvalidUsageError
from kraken_clients.rest.signer import (
    NonceGenerator,
    build_signed_request,
    encode_form,
    sign_request,
)

# Example published in Kraken's REST authentication guide
DOC_SECRET = "kQH5HW/8p1uGOVjbgWA7FunAmGO8lsSUXNsu3eow76sz84Q18fWxnyRzBHCd3pd5nE9qa99HAZtuZuj6F1huXg=="
DOC_NONCE = 1616492376594
DOC_PATH = "/0/private/AddOrder"
DOC_FIELDS = [
    ("nonce", str(DOC_NONCE)),
    ("ordertype", "limit"),
    ("pair", "XBTUSD"),
    ("price", "37500"),
    ("type", "buy"),
    ("volume", "1.25"),
]
DOC_SIGNATURE = "4/dpxb3iT4tp/ZCVEwSnEsLxx0bqyhLpdfOpc6fn7OR8+UClSV5n9E6aSS8MPtnRfp32bAb0nmbRn6H8ndwLUQ=="

SECRET = base64.b64encode(b"a-test-secret-of-reasonable-length").decode()


class TestSignRequest:
    """API-Sign computation."""

    def test_matches_documented_example(self):
        assert sign_request(DOC_SECRET, DOC_PATH, DOC_FIELDS, DOC_NONCE) == DOC_SIGNATURE

    def test_deterministic(self):
        fields = [("nonce", "1"), ("pair", "XBTUSD")]

        first = sign_request(SECRET, "/0/private/Balance", fields, 1)
        second = sign_request(SECRET, "/0/private/Balance", fields, 1)

        assert first == second
        assert len(base64.b64decode(first)) == 64

    @pytest.mark.parametrize(
        "secret, path, fields, nonce",
        [
            (base64.b64encode(b"another-secret").decode(), "/0/private/Balance", [("nonce", "1"), ("pair", "XBTUSD")], 1),
            (SECRET, "/0/private/TradeBalance", [("nonce", "1"), ("pair", "XBTUSD")], 1),
            (SECRET, "/0/private/Balance", [("nonce", "1"), ("pair", "ETHUSD")], 1),
            (SECRET, "/0/private/Balance", [("nonce", "1"), ("pair", "XBTUSD")], 2),
        ],
    )
    def test_any_input_change_changes_signature(self, secret, path, fields, nonce):
        baseline = sign_request(SECRET, "/0/private/Balance", [("nonce", "1"), ("pair", "XBTUSD")], 1)

        assert sign_request(secret, path, fields, nonce) != baseline

    def test_field_order_matters(self):
        ordered = [("nonce", "1"), ("a", "1"), ("b", "2")]
        swapped = [("nonce", "1"), ("b", "2"), ("a", "1")]

        assert sign_request(SECRET, "/0/private/X", ordered, 1) != sign_request(SECRET, "/0/private/X", swapped, 1)

    def test_invalid_base64_secret(self):
        with pytest.raises(InvalidUsageError, match="Could not decode API secret from base64"):
            sign_request("not base64!!", "/0/private/Balance", [("nonce", "1")], 1)

    def test_empty_secret(self):
        with pytest.raises(InvalidUsageError, match="HMAC"):
            sign_request("", "/0/private/Balance", [("nonce", "1")], 1)


class TestBuildSignedRequest:
    """Form assembly around the signature."""

    def test_nonce_first_then_caller_order(self):
        signed = build_signed_request(SECRET, "/0/private/AddOrder", [("pair", "XBTUSD"), ("type", "buy")], 42)

        assert signed.fields == (("nonce", "42"), ("pair", "XBTUSD"), ("type", "buy"))
        assert signed.body == "nonce=42&pair=XBTUSD&type=buy"
        assert signed.nonce == 42

    def test_signature_covers_body(self):
        signed = build_signed_request(SECRET, "/0/private/AddOrder", [("pair", "XBTUSD")], 42)

        assert signed.signature == sign_request(SECRET, "/0/private/AddOrder", signed.fields, 42)

    def test_values_are_stringified(self):
        signed = build_signed_request(SECRET, "/0/private/AddOrder", [("volume", 1.25), ("validate", True)], 7)

        assert signed.fields[1:] == (("volume", "1.25"), ("validate", "true"))

    def test_no_params(self):
        signed = build_signed_request(SECRET, "/0/private/Balance", None, 7)

        assert signed.body == "nonce=7"

    def test_documented_body_matches(self):
        signed = build_signed_request(DOC_SECRET, DOC_PATH, DOC_FIELDS[1:], DOC_NONCE)

        assert signed.body == encode_form(DOC_FIELDS)
        assert signed.signature == DOC_SIGNATURE


class TestNonceGenerator:
    """Strictly increasing nonces."""

    def test_uses_microseconds(self):
        generator = NonceGenerator(clock=lambda: 1_000.0)

        assert generator.next() == 1_000_000_000

    def test_same_clock_reading_still_increases(self):
        generator = NonceGenerator(clock=lambda: 1_000.0)

        values = [generator.next() for _ in range(5)]

        assert values == [1_000_000_000 + i for i in range(5)]

    def test_clock_going_backwards(self):
        readings = iter([2_000.0, 1_000.0, 3_000.0])
        generator = NonceGenerator(clock=lambda: next(readings))

        first = generator.next()
        second = generator.next()
        third = generator.next()

        assert first == 2_000_000_000
        assert second == first + 1
        assert third == 3_000_000_000
        assert generator.last == third

    def test_real_clock_is_monotonic_across_threads(self):
        generator = NonceGenerator()
        results = []
        lock = threading.Lock()

        def worker():
            local = [generator.next() for _ in range(200)]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(results)) == len(results) == 800
