from __future__ import annotations

import base64
import binascii
import hashlib
import json
import os
from functools import lru_cache
from typing import Any, Mapping

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config import get_settings

DEV_SEED = "community-dev"

ENVELOPE_VERSION = 1
ENVELOPE_ALG = "A256GCM"
NONCE_SIZE = 12
# Associated data: envelope version and algorithm.
_ASSOCIATED_DATA = f"envelope:v{ENVELOPE_VERSION}:{ENVELOPE_ALG}".encode("ascii")

logger = structlog.get_logger("crypto")


class DecryptionError(Exception):
    """An envelope could not be authenticated or decrypted."""


class MalformedEnvelope(DecryptionError):
    """An envelope is structurally invalid (shape, encoding, or inner JSON)."""


def normalize_key(raw_key: str | bytes | None) -> bytes:
    """Accept a hex key, a urlsafe-base64 key, or any passphrase and return 32 key bytes."""
    if isinstance(raw_key, bytes):
        if len(raw_key) == 32:
            return raw_key
        raw_key = raw_key.decode("utf-8")
    if raw_key:
        trimmed = raw_key.strip()
        if trimmed:
            if len(trimmed) == 64:
                try:
                    return bytes.fromhex(trimmed)
                except ValueError:
                    pass
            decoded = _strict_b64decode(trimmed)
            if decoded is not None and len(decoded) == 32:
                return decoded
            return hashlib.sha256(trimmed.encode("utf-8")).digest()
    return hashlib.sha256(DEV_SEED.encode("utf-8")).digest()


@lru_cache
def _get_cipher() -> AESGCM:
    settings = get_settings()
    return AESGCM(normalize_key(settings.APP_ENCRYPTION_KEY))


def _cipher_for(key: str | bytes | None) -> AESGCM:
    if key is None:
        return _get_cipher()
    return AESGCM(normalize_key(key))


def canonical_json(value: Any) -> str:
    """Deterministic JSON text; raises TypeError/ValueError for values JSON cannot carry."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def _strict_b64decode(text: str) -> bytes | None:
    """Decode canonical urlsafe base64 only; any other spelling of the same bytes is rejected."""
    try:
        raw = base64.b64decode(text.encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, ValueError, binascii.Error):
        return None
    if _b64encode(raw) != text:
        return None
    return raw


def _b64decode(text: Any, field: str) -> bytes:
    if not isinstance(text, str) or not text:
        raise MalformedEnvelope(f"envelope field '{field}' is missing")
    raw = _strict_b64decode(text)
    if raw is None:
        raise MalformedEnvelope(f"envelope field '{field}' is not base64")
    return raw


def encrypt_json(value: Any, key: str | bytes | None = None) -> dict[str, Any]:
    """Serialize JSON-able data and seal it into a wire envelope."""
    plaintext = canonical_json(value).encode("utf-8")
    nonce = os.urandom(NONCE_SIZE)
    sealed = _cipher_for(key).encrypt(nonce, plaintext, _ASSOCIATED_DATA)
    return {
        "v": ENVELOPE_VERSION,
        "alg": ENVELOPE_ALG,
        "nonce": _b64encode(nonce),
        "payload": _b64encode(sealed),
    }


def decrypt_json(envelope: Mapping[str, Any], key: str | bytes | None = None) -> Any:
    """Open an envelope produced by `encrypt_json` and return the original value."""
    if not isinstance(envelope, Mapping):
        raise MalformedEnvelope("envelope must be a JSON object")
    version = envelope.get("v")
    if type(version) is not int or version != ENVELOPE_VERSION or envelope.get("alg") != ENVELOPE_ALG:
        raise MalformedEnvelope("unsupported envelope version")

    nonce = _b64decode(envelope.get("nonce"), "nonce")
    sealed = _b64decode(envelope.get("payload"), "payload")
    if len(nonce) != NONCE_SIZE:
        raise MalformedEnvelope("envelope nonce has the wrong length")

    try:
        plaintext = _cipher_for(key).decrypt(nonce, sealed, _ASSOCIATED_DATA)
    except InvalidTag as exc:
        logger.warning("envelope.decrypt_failed", reason="authentication")
        raise DecryptionError("envelope authentication failed") from exc

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedEnvelope("envelope plaintext is not JSON") from exc


def decode_body(raw: bytes | str | Mapping[str, Any], key: str | bytes | None = None) -> Any:
    """Decode a raw HTTP body (bytes, text, or parsed JSON) carrying an envelope."""
    if isinstance(raw, Mapping):
        return decrypt_json(raw, key)
    try:
        parsed = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedEnvelope("response body is not JSON") from exc
    return decrypt_json(parsed, key)


def is_envelope(body: Any) -> bool:
    return isinstance(body, Mapping) and "payload" in body and "nonce" in body


def reset_crypto_state() -> None:
    """Clear the cached cipher (used by tests when env changes)."""
    _get_cipher.cache_clear()
