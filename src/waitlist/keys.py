"""Deterministic keys and opaque tokens.

Idempotency keys
    ``sha256(json.dumps([event_type, business_id, customer_id, reference_id]))``
    over the canonical JSON encoding (compact separators, every element
    coerced to ``str``, ``None`` encoded as ``""``). The same logical event
    always yields the same 64-character hex key, whichever process derives it.

Address hashes
    ``sha256("<channel>:<normalized address>")`` where emails are stripped
    and lower-cased and phone numbers reduced to ``+`` and digits. Raw
    addresses are never used as keys.
"""

import hashlib
import json
import re
import secrets

TOKEN_BYTES = 32  # 256 bits


def _canonical(parts) -> str:
    return json.dumps(
        ["" if part is None else str(part) for part in parts],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def idempotency_key(event_type: str, business_id, customer_id, reference_id) -> str:
    payload = _canonical([event_type, business_id, customer_id, reference_id])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def normalize_address(channel: str, address: str) -> str:
    address = (address or "").strip()
    if channel == "sms":
        return re.sub(r"[^\d+]", "", address)
    return address.lower()


def address_hash(channel: str, address: str) -> str:
    normalized = normalize_address(channel, address)
    return hashlib.sha256(f"{channel}:{normalized}".encode()).hexdigest()


def offer_token() -> str:
    """Opaque, URL-safe offer token carrying 256 bits of randomness."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def mask_address(address: str | None) -> str:
    """Shorten an address for log output: ``j***@example.com``, ``***4567``."""
    if not address:
        return ""
    if "@" in address:
        local, _, domain = address.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{address[-4:]}"
