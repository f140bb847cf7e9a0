import hashlib
import hmac

from relay.services.signature_service import compute_signature, verify_signature

BODY = b'{"object":"page","entry":[]}'


class TestComputeSignature:
    def test_matches_hmac_sha256(self):
        expected = hmac.new(b"secret", BODY, hashlib.sha256).hexdigest()
        assert compute_signature(BODY, "secret") == expected

    def test_sha1(self):
        expected = hmac.new(b"secret", BODY, hashlib.sha1).hexdigest()
        assert compute_signature(BODY, "secret", "sha1") == expected


class TestVerifySignature:
    def test_accepts_sha256_header(self):
        header = f"sha256={compute_signature(BODY, 'secret')}"
        assert verify_signature(BODY, header, "secret") is True

    def test_accepts_sha1_header(self):
        header = f"sha1={compute_signature(BODY, 'secret', 'sha1')}"
        assert verify_signature(BODY, header, "secret") is True

    def test_rejects_wrong_secret(self):
        header = f"sha256={compute_signature(BODY, 'other')}"
        assert verify_signature(BODY, header, "secret") is False

    def test_rejects_tampered_body(self):
        header = f"sha256={compute_signature(BODY, 'secret')}"
        assert verify_signature(BODY + b" ", header, "secret") is False

    def test_rejects_malformed_headers(self):
        assert verify_signature(BODY, None, "secret") is False
        assert verify_signature(BODY, "", "secret") is False
        assert verify_signature(BODY, "deadbeef", "secret") is False
        assert verify_signature(BODY, "md5=deadbeef", "secret") is False
        assert verify_signature(BODY, "sha256=", "secret") is False
