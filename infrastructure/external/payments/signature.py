"""
Webhook signature verification using the provider's PEM public key.

Monobank signs the raw request body with ECDSA over SHA-256; RSA keys are
accepted with PKCS#1 v1.5 padding. Any malformed input yields False.
"""
from __future__ import annotations

from functools import lru_cache

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from application.dtos.payments import KeyMaterial
from core.logging_config import get_logger


logger = get_logger(__name__)


@lru_cache(maxsize=8)
def load_verification_key(pem: bytes) -> ec.EllipticCurvePublicKey | rsa.RSAPublicKey:
    """Parse a PEM public key usable for webhook verification; ValueError otherwise."""
    try:
        public_key = serialization.load_pem_public_key(pem)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ValueError("public key PEM is not parseable") from exc
    if not isinstance(public_key, (ec.EllipticCurvePublicKey, rsa.RSAPublicKey)):
        raise ValueError(f"unsupported public key type: {type(public_key).__name__}")
    return public_key


def verify_signature(payload: bytes, signature: bytes, pem: bytes) -> bool:
    if not payload or not signature or not pem:
        return False
    try:
        public_key = load_verification_key(pem)
    except ValueError as exc:
        logger.warning("payment_pubkey_unusable", error=str(exc))
        return False

    try:
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, payload, ec.ECDSA(hashes.SHA256()))
        else:
            public_key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    except (InvalidSignature, ValueError):
        return False
    return True


class CryptographySignatureVerifier:
    """SignatureVerifier adapter backed by ``cryptography``."""

    def verify(self, raw_payload: bytes, signature: bytes, key: KeyMaterial) -> bool:
        return verify_signature(raw_payload, signature, key.pem)
