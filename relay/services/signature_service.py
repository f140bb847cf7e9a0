import hashlib
import hmac
from typing import Optional

SIGNATURE_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def compute_signature(body: bytes, secret: str, algorithm: str = "sha256") -> str:
    digest = SIGNATURE_ALGORITHMS[algorithm]
    return hmac.new(secret.encode("utf-8"), body, digest).hexdigest()


def verify_signature(body: bytes, header: Optional[str], secret: str) -> bool:
    """Check an `X-Hub-Signature[-256]` header value ("sha256=<hex>") against the raw body."""
    if not header or "=" not in header:
        return False
    algorithm, _, provided = header.strip().partition("=")
    algorithm = algorithm.lower()
    if algorithm not in SIGNATURE_ALGORITHMS or not provided:
        return False
    expected = compute_signature(body, secret, algorithm)
    return hmac.compare_digest(expected, provided.lower())
