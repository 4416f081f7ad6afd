"""Tests for Flowglad signature verification."""

from __future__ import annotations

import pytest

from subsync.flowglad.signature import (
    TOLERANCE_SECONDS,
    MalformedHeaderError,
    MissingSecretError,
    MissingSignatureHeaderError,
    NoValidSignatureError,
    SignatureEntry,
    build_signature_header,
    compute_signature,
    parse_signature_header,
    verify_signature,
)

from helpers import WEBHOOK_SECRET, signature_entry

NOW = 1_760_000_000
BODY = b'{"type": "subscription.created", "data": {"subscription": {"customerId": "cus_1"}}}'


class TestComputeSignature:
    def test_known_vector(self):
        """HMAC-SHA256 over '<ts>.<body>', base64 with padding."""
        sig = compute_signature("secret", 1, b"{}")
        # base64 of a 32-byte digest is 44 chars ending in '='
        assert len(sig) == 44
        assert sig.endswith("=")

    def test_timestamp_is_part_of_signed_payload(self):
        assert compute_signature("s", 1, BODY) != compute_signature("s", 2, BODY)

    def test_secret_changes_signature(self):
        assert compute_signature("a", NOW, BODY) != compute_signature("b", NOW, BODY)

    def test_build_header_format(self):
        header = build_signature_header(WEBHOOK_SECRET, BODY, timestamp=NOW)
        version, ts, sig = header.split(",")
        assert version == "v1"
        assert ts == str(NOW)
        assert sig == compute_signature(WEBHOOK_SECRET, NOW, BODY)


class TestParseHeader:
    def test_multiple_entries_split_on_whitespace(self):
        entries = parse_signature_header("v1,1,aaa  v1,2,bbb\tv2,3,ccc")
        assert entries == [
            SignatureEntry("v1", "1", "aaa"),
            SignatureEntry("v1", "2", "bbb"),
            SignatureEntry("v2", "3", "ccc"),
        ]

    def test_tokens_without_three_parts_dropped(self):
        entries = parse_signature_header("garbage v1,1,aaa v1,2")
        assert entries == [SignatureEntry("v1", "1", "aaa")]

    @pytest.mark.parametrize("header", ["", "   ", "v1", "t=1,v1=abc"])
    def test_no_parseable_entry_is_malformed(self, header):
        with pytest.raises(MalformedHeaderError):
            parse_signature_header(header)


class TestVerifySignature:
    def test_valid_signature_returns_entry(self):
        header = signature_entry(BODY, NOW)
        entry = verify_signature(BODY, header, WEBHOOK_SECRET, now=NOW)
        assert entry.timestamp == str(NOW)

    def test_signature_verifies_against_itself_for_various_bodies(self):
        for body in (b"{}", b'{"a":1}', "{\"é\": \"ü\"}".encode(), b" \n{ }\n"):
            header = signature_entry(body, NOW)
            verify_signature(body, header, WEBHOOK_SECRET, now=NOW)

    def test_any_single_byte_mutation_fails(self):
        header = signature_entry(BODY, NOW)
        for i in range(len(BODY)):
            tampered = bytearray(BODY)
            tampered[i] ^= 0x01
            with pytest.raises(NoValidSignatureError):
                verify_signature(bytes(tampered), header, WEBHOOK_SECRET, now=NOW)

    def test_reserialized_body_fails(self):
        """Whitespace differences from re-serialization break verification."""
        header = signature_entry(BODY, NOW)
        reserialized = BODY.replace(b": ", b":")
        with pytest.raises(NoValidSignatureError):
            verify_signature(reserialized, header, WEBHOOK_SECRET, now=NOW)

    def test_wrong_secret_fails(self):
        header = signature_entry(BODY, NOW, secret="whsec_other")
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, header, WEBHOOK_SECRET, now=NOW)

    @pytest.mark.parametrize("offset", [-TOLERANCE_SECONDS, 0, TOLERANCE_SECONDS])
    def test_timestamp_inside_window_accepted(self, offset):
        header = signature_entry(BODY, NOW + offset)
        verify_signature(BODY, header, WEBHOOK_SECRET, now=NOW)

    @pytest.mark.parametrize(
        "offset", [-TOLERANCE_SECONDS - 1, TOLERANCE_SECONDS + 1, -86400, 86400]
    )
    def test_timestamp_outside_window_rejected(self, offset):
        header = signature_entry(BODY, NOW + offset)
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, header, WEBHOOK_SECRET, now=NOW)

    @pytest.mark.parametrize("ts", ["0", "-5", "abc", "12.5", "1e9", "", "9" * 5000, "1" + "0" * 12])
    def test_invalid_timestamp_rejected(self, ts):
        sig = compute_signature(WEBHOOK_SECRET, ts, BODY)
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, f"v1,{ts},{sig}", WEBHOOK_SECRET, now=NOW)

    def test_oversized_timestamp_skipped_for_next_entry(self):
        oversized = "v1," + "9" * 5000 + ",AAAA"
        valid = signature_entry(BODY, NOW)
        entry = verify_signature(BODY, f"{oversized} {valid}", WEBHOOK_SECRET, now=NOW)
        assert entry.timestamp == str(NOW)

    def test_unknown_version_skipped(self):
        sig = compute_signature(WEBHOOK_SECRET, NOW, BODY)
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, f"v2,{NOW},{sig}", WEBHOOK_SECRET, now=NOW)

    def test_expired_first_entry_valid_second(self):
        """Redundant signatures: one good entry is enough."""
        expired = signature_entry(BODY, NOW - 3600)
        valid = signature_entry(BODY, NOW)
        entry = verify_signature(BODY, f"{expired} {valid}", WEBHOOK_SECRET, now=NOW)
        assert entry.timestamp == str(NOW)

    def test_rotated_key_second_entry_valid(self):
        old_key = signature_entry(BODY, NOW, secret="whsec_old")
        new_key = signature_entry(BODY, NOW)
        verify_signature(BODY, f"{old_key} {new_key}", WEBHOOK_SECRET, now=NOW)

    def test_all_entries_invalid(self):
        header = " ".join(
            [
                signature_entry(BODY, NOW - 3600),
                signature_entry(BODY, NOW, secret="whsec_other"),
                "v1,notanumber,abc",
            ]
        )
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, header, WEBHOOK_SECRET, now=NOW)

    def test_signature_of_different_length_rejected(self):
        with pytest.raises(NoValidSignatureError):
            verify_signature(BODY, f"v1,{NOW},short", WEBHOOK_SECRET, now=NOW)

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret(self, secret):
        with pytest.raises(MissingSecretError):
            verify_signature(BODY, signature_entry(BODY, NOW), secret, now=NOW)

    def test_missing_header(self):
        with pytest.raises(MissingSignatureHeaderError):
            verify_signature(BODY, None, WEBHOOK_SECRET, now=NOW)

    def test_malformed_header(self):
        with pytest.raises(MalformedHeaderError):
            verify_signature(BODY, "not-a-signature", WEBHOOK_SECRET, now=NOW)

    def test_error_status_codes(self):
        assert MissingSecretError.status_code == 500
        assert MissingSignatureHeaderError.status_code == 401
        assert NoValidSignatureError.status_code == 401
        assert MalformedHeaderError.status_code == 400
