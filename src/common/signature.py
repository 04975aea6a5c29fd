"""GitHub webhook signature check (`X-Hub-Signature-256`)."""

import hashlib
import hmac


def verify_signature(secret: str, body: bytes, signature_header: str | None) -> bool:
    """
    Check an HMAC-SHA256 webhook signature in constant time.

    Args:
        secret: Shared webhook secret.
        body: Raw request body, exactly as received.
        signature_header: Header value, expected as `sha256=<hex>`.
    Returns:
        True only when the header is present and matches.
    """
    if not secret or not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)
