import hashlib
import hmac

SIGNATURE_PREFIX = 'sha256='


def sign(secret, payload_bytes):
    """Return the ``sha256=<hex>`` HMAC signature of ``payload_bytes``."""
    if isinstance(secret, str):
        secret = secret.encode('utf-8')
    digest = hmac.new(secret, payload_bytes, hashlib.sha256).hexdigest()
    return f'{SIGNATURE_PREFIX}{digest}'


def verify(secret, payload_bytes, signature_header):
    """Check a received ``X-Webhook-Signature`` header in constant time.

    Subscribers run this on their side; the service itself only signs.
    """
    if not signature_header:
        return False
    expected = sign(secret, payload_bytes)
    return hmac.compare_digest(expected, signature_header)
