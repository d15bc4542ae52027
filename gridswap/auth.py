"""
gridswap key custody - Solana keypair loading and ED25519 transaction signing.
"""

import base64
import json
from pathlib import Path
from typing import List, Tuple

try:
    import nacl.signing
except ImportError:
    raise ImportError("pynacl is required for signing. Install with: pip install pynacl")

from .exceptions import ExecutionFailed, KeypairError

# Base58 alphabet for key and signature encoding
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

SIGNATURE_LENGTH = 64
PUBKEY_LENGTH = 32


def base58_decode(s: str) -> bytes:
    """Decode base58 string to bytes"""
    num = 0
    for char in s:
        if char not in BASE58_ALPHABET:
            raise ValueError(f"Invalid base58 character: {char!r}")
        num = num * 58 + BASE58_ALPHABET.index(char)

    # Convert to bytes
    result = []
    while num > 0:
        result.append(num & 0xff)
        num >>= 8

    # Add leading zeros
    for char in s:
        if char == "1":
            result.append(0)
        else:
            break

    return bytes(reversed(result))


def base58_encode(data: bytes) -> str:
    """Encode bytes as base58 string"""
    num = int.from_bytes(data, "big")
    chars = []
    while num > 0:
        num, rem = divmod(num, 58)
        chars.append(BASE58_ALPHABET[rem])

    # Leading zero bytes map to "1"
    for byte in data:
        if byte == 0:
            chars.append("1")
        else:
            break

    return "".join(reversed(chars))


def read_shortvec(data: bytes, offset: int) -> Tuple[int, int]:
    """
    Decode a Solana compact-u16 length prefix.

    Returns:
        (value, offset just past the prefix)
    """
    value = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("Truncated compact-u16")
        byte = data[offset]
        offset += 1
        value |= (byte & 0x7f) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7


def message_account_keys(message: bytes) -> Tuple[int, List[bytes]]:
    """
    Parse the header of a legacy or v0 transaction message.

    Returns:
        (number of required signatures, static account keys)
    """
    pos = 1 if message[0] & 0x80 else 0  # v0 messages carry a version prefix
    num_required = message[pos]
    pos += 3
    count, pos = read_shortvec(message, pos)
    keys = [message[pos + i * PUBKEY_LENGTH:pos + (i + 1) * PUBKEY_LENGTH] for i in range(count)]
    if any(len(k) != PUBKEY_LENGTH for k in keys):
        raise ValueError("Truncated account keys")
    return num_required, keys


class Keypair:
    """
    A Solana wallet key.

    Example:
        kp = Keypair.from_file("~/.config/solana/id.json")
        kp.public_key  # base58 address
    """

    def __init__(self, signing_key: "nacl.signing.SigningKey"):
        self._signing_key = signing_key
        self.public_key_bytes = bytes(signing_key.verify_key)
        self.public_key = base58_encode(self.public_key_bytes)

    @classmethod
    def from_secret_bytes(cls, secret: bytes) -> "Keypair":
        """
        Build from a 64-byte secret (seed + public key) or a 32-byte seed.
        """
        if len(secret) not in (32, 64):
            raise KeypairError(f"Expected 32 or 64 secret key bytes, got {len(secret)}")

        signing_key = nacl.signing.SigningKey(secret[:32])
        if len(secret) == 64 and bytes(signing_key.verify_key) != secret[32:]:
            raise KeypairError("Secret key does not match its embedded public key")
        return cls(signing_key)

    @classmethod
    def from_file(cls, path: str) -> "Keypair":
        """
        Load a keypair file in the Solana CLI format (JSON array of 64 bytes).
        """
        try:
            with open(Path(path).expanduser()) as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise KeypairError(f"Cannot read keypair {path}: {e}")

        if not isinstance(raw, list) or not all(isinstance(b, int) and 0 <= b <= 255 for b in raw):
            raise KeypairError(f"Keypair {path} must be a JSON array of byte values")
        return cls.from_secret_bytes(bytes(raw))

    def sign(self, message: bytes) -> bytes:
        """Sign a message, returning the raw 64-byte signature"""
        return self._signing_key.sign(message).signature

    def sign_transaction(self, tx_base64: str) -> Tuple[str, str]:
        """
        Sign a serialized transaction in our signer slot.

        The aggregator returns a transaction with empty signature slots; the
        message bytes after them are what every signer signs.

        Args:
            tx_base64: Base64-encoded wire transaction

        Returns:
            (signed transaction as base64, transaction signature as base58)
        """
        try:
            raw = bytearray(base64.b64decode(tx_base64))
            num_sigs, sig_start = read_shortvec(raw, 0)
            msg_start = sig_start + num_sigs * SIGNATURE_LENGTH
            message = bytes(raw[msg_start:])
            num_required, keys = message_account_keys(message)
        except (ValueError, IndexError) as e:
            raise ExecutionFailed(f"Malformed transaction: {e}")

        signers = keys[:min(num_required, num_sigs)]
        if self.public_key_bytes not in signers:
            raise ExecutionFailed(f"Transaction does not require a signature from {self.public_key}")
        slot = signers.index(self.public_key_bytes)

        signature = self.sign(message)
        offset = sig_start + slot * SIGNATURE_LENGTH
        raw[offset:offset + SIGNATURE_LENGTH] = signature

        first_sig = bytes(raw[sig_start:sig_start + SIGNATURE_LENGTH])
        return base64.b64encode(bytes(raw)).decode(), base58_encode(first_sig)

    def __repr__(self) -> str:
        return f"Keypair({self.public_key})"
