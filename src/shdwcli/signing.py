"""Signer capability backed by Ed25519 keys.

Keypair files follow the Solana CLI format: a JSON array of 64 integers,
the 32-byte secret seed followed by the 32-byte public key.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .types import SignerResolutionError, SigningError

_logger = logging.getLogger(__name__)

PUBKEY_LENGTH = 32
KEYPAIR_LENGTH = 64


class Pubkey:
    """A 32-byte public identity whose string form is base-58."""

    __slots__ = ("_bytes",)

    def __init__(self, raw: bytes):
        if len(raw) != PUBKEY_LENGTH:
            raise ValueError(f"Pubkey must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
        self._bytes = bytes(raw)

    @classmethod
    def from_string(cls, address: str) -> "Pubkey":
        """Parse a base-58 address.

        Raises:
            ValueError: If the string is not base-58 or has the wrong length.
        """
        try:
            raw = base58.b58decode(address)
        except ValueError:
            raise ValueError(f"Invalid base-58 address: {address!r}")
        return cls(raw)

    def __bytes__(self) -> bytes:
        return self._bytes

    def __str__(self) -> str:
        return base58.b58encode(self._bytes).decode()

    def __repr__(self) -> str:
        return f"Pubkey({self})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Pubkey) and other._bytes == self._bytes

    def __hash__(self) -> int:
        return hash(self._bytes)


class Signer(ABC):
    """A key holder able to prove identity.

    Any key source (keypair file, hardware wallet, remote signer) can
    implement this. Signing may perform I/O.
    """

    @abstractmethod
    def pubkey(self) -> Pubkey:
        """Return the public identity. Never fails."""

    @abstractmethod
    def try_sign_message(self, message: bytes) -> bytes:
        """Sign ``message``.

        Raises:
            SigningError: If the key source cannot produce a signature.
        """

    def sign_message(self, message: bytes) -> bytes:
        """Sign ``message``; a failure here is fatal and is not retried."""
        try:
            return self.try_sign_message(message)
        except SigningError:
            _logger.error("Signer %s failed to sign", self.pubkey())
            raise

    @abstractmethod
    def is_interactive(self) -> bool:
        """True if producing a signature may prompt a human."""


class KeypairSigner(Signer):
    """Signer holding an Ed25519 private key in memory."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._pubkey = Pubkey(public_bytes)

    @classmethod
    def from_seed(cls, seed: bytes) -> "KeypairSigner":
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    def pubkey(self) -> Pubkey:
        return self._pubkey

    def try_sign_message(self, message: bytes) -> bytes:
        try:
            return self._private_key.sign(message)
        except Exception as exc:
            raise SigningError(f"Ed25519 signing failed: {exc}") from exc

    def is_interactive(self) -> bool:
        return False

    def to_bytes(self) -> bytes:
        """Return the 64-byte secret-then-public keypair encoding."""
        seed = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + bytes(self._pubkey)


def generate_keypair() -> KeypairSigner:
    """Generate a new Ed25519 keypair signer."""
    return KeypairSigner(Ed25519PrivateKey.generate())


def encode_signature(signature: bytes) -> str:
    """Encode raw signature bytes as base-58."""
    return base58.b58encode(signature).decode()


def verify_signature(pubkey: Pubkey, signature: bytes, message: bytes) -> bool:
    """Check an Ed25519 signature against ``pubkey``."""
    public_key = Ed25519PublicKey.from_public_bytes(bytes(pubkey))
    try:
        public_key.verify(signature, message)
        return True
    except InvalidSignature:
        return False


def load_keypair(path: Union[str, Path]) -> KeypairSigner:
    """Load a Solana CLI keypair file.

    Args:
        path: Path to a JSON array of 64 integers

    Returns:
        KeypairSigner for the stored key.

    Raises:
        SignerResolutionError: If the file is missing, malformed, or its
            public half does not match the secret seed.
    """
    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as exc:
        raise SignerResolutionError(f"Could not read keypair file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SignerResolutionError(f"Keypair file {path} is not valid JSON") from exc

    if not isinstance(data, list) or len(data) != KEYPAIR_LENGTH:
        raise SignerResolutionError(
            f"Keypair file {path} must contain a JSON array of {KEYPAIR_LENGTH} integers"
        )
    try:
        raw = bytes(data)
    except (TypeError, ValueError) as exc:
        raise SignerResolutionError(f"Keypair file {path} contains non-byte values") from exc

    signer = KeypairSigner.from_seed(raw[:PUBKEY_LENGTH])
    if bytes(signer.pubkey()) != raw[PUBKEY_LENGTH:]:
        raise SignerResolutionError(f"Keypair file {path} has a mismatched public key")
    return signer


def write_keypair(path: Union[str, Path], signer: KeypairSigner) -> None:
    """Write ``signer`` to ``path`` in Solana CLI keypair format."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(list(signer.to_bytes()), f)


def signer_from_path(path: str) -> Signer:
    """Resolve a signer from a keypair location.

    Only keypair files are supported. Hardware wallets (``usb://``) and
    seed-phrase prompts (``prompt://``) are rejected.

    Raises:
        SignerResolutionError: If no signer can be built from ``path``.
    """
    if not path:
        raise SignerResolutionError("No keypair path configured")
    if path.startswith("usb://"):
        raise SignerResolutionError(f"Hardware wallets are not supported: {path}")
    if path.startswith("prompt:") or path in ("ASK", "stdin"):
        raise SignerResolutionError(f"Interactive keypair sources are not supported: {path}")
    if path.startswith("file:"):
        path = path[len("file:"):]

    signer = load_keypair(path)
    _logger.debug("Resolved signer %s from %s", signer.pubkey(), path)
    return signer
