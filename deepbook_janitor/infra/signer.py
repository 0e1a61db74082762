"""
Key decoding and Ed25519 transaction signing.

Accepted encodings for the private key:
- Bech32 `suiprivkey1...` (flag byte + 32-byte seed)
- Raw base64 of the 32-byte seed, or of flag byte + seed (keystore format)
"""

from __future__ import annotations

import base64
import binascii
import hashlib

from bech32 import bech32_decode, convertbits
from nacl.signing import SigningKey

from deepbook_janitor.core.errors import CredentialFormatError

SUI_PRIVKEY_PREFIX = "suiprivkey"
ED25519_FLAG = 0x00
# TransactionData intent: scope=0, version=0, app=Sui
TRANSACTION_INTENT = bytes([0, 0, 0])


class Ed25519Signer:
    def __init__(self, seed: bytes) -> None:
        if len(seed) != 32:
            raise CredentialFormatError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        self._key = SigningKey(seed)
        self._public = bytes(self._key.verify_key)
        digest = hashlib.blake2b(bytes([ED25519_FLAG]) + self._public, digest_size=32).digest()
        self._address = "0x" + digest.hex()

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> bytes:
        return self._public

    def sign_transaction(self, tx_bytes_b64: str) -> str:
        """Return the serialized signature (flag || sig || pubkey) as base64."""
        tx_bytes = base64.b64decode(tx_bytes_b64)
        digest = hashlib.blake2b(TRANSACTION_INTENT + tx_bytes, digest_size=32).digest()
        signature = self._key.sign(digest).signature
        return base64.b64encode(bytes([ED25519_FLAG]) + signature + self.public_key).decode("ascii")


def decode_private_key(raw: str) -> bytes:
    """Return the 32-byte Ed25519 seed encoded in `raw`."""
    raw = (raw or "").strip()
    if not raw:
        raise CredentialFormatError("empty private key")
    if raw.startswith(SUI_PRIVKEY_PREFIX):
        return _decode_bech32(raw)
    return _decode_base64(raw)


def _decode_bech32(raw: str) -> bytes:
    hrp, data = bech32_decode(raw)
    if hrp != SUI_PRIVKEY_PREFIX or data is None:
        raise CredentialFormatError("invalid suiprivkey bech32 string")
    decoded = convertbits(data, 5, 8, False)
    if decoded is None or len(decoded) != 33:
        raise CredentialFormatError("suiprivkey payload must be 33 bytes")
    if decoded[0] != ED25519_FLAG:
        raise CredentialFormatError(f"unsupported key scheme flag {decoded[0]}")
    return bytes(decoded[1:])


def _decode_base64(raw: str) -> bytes:
    try:
        decoded = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialFormatError("private key is neither suiprivkey nor base64") from exc
    if len(decoded) == 32:
        return decoded
    if len(decoded) == 33:
        if decoded[0] != ED25519_FLAG:
            raise CredentialFormatError(f"unsupported key scheme flag {decoded[0]}")
        return decoded[1:]
    raise CredentialFormatError(f"base64 private key must decode to 32 or 33 bytes, got {len(decoded)}")


def load_signer(raw: str) -> Ed25519Signer:
    return Ed25519Signer(decode_private_key(raw))
