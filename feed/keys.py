"""Account identities and signing capabilities.

Every on-ledger account is addressed by a 32-byte Ed25519 public key. The
all-zero key is reserved as the sentinel that terminates the message chain.
"""

import base58
from nacl.signing import SigningKey

PUBLIC_KEY_LENGTH = 32
SECRET_KEY_LENGTH = 64


class PublicKey:
    """Opaque 32-byte account identity with value semantics.

    Accepts raw bytes, a base58 string, a 64-character hex string, or the
    integer 0 (the sentinel). The text form is base58.
    """

    __slots__ = ("_key",)

    def __init__(self, value: "bytes | str | int | PublicKey") -> None:
        if isinstance(value, PublicKey):
            key = value._key
        elif isinstance(value, int):
            if value < 0:
                raise ValueError("Public key integer cannot be negative")
            key = value.to_bytes(PUBLIC_KEY_LENGTH, "big")
        elif isinstance(value, str):
            key = _decode_key_string(value)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            key = bytes(value)
        else:
            raise TypeError(f"Cannot build a public key from {type(value).__name__}")

        if len(key) != PUBLIC_KEY_LENGTH:
            raise ValueError(f"Invalid public key length: {len(key)} bytes")
        self._key = key

    def __bytes__(self) -> bytes:
        return self._key

    def to_bytes(self) -> bytes:
        return self._key

    def to_base58(self) -> str:
        return base58.b58encode(self._key).decode("ascii")

    def is_sentinel(self) -> bool:
        return not any(self._key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self._key == other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __str__(self) -> str:
        return self.to_base58()

    def __repr__(self) -> str:
        return f"PublicKey({self.to_base58()!r})"


def _decode_key_string(value: str) -> bytes:
    text = value.strip()
    if len(text) == PUBLIC_KEY_LENGTH * 2:
        try:
            return bytes.fromhex(text)
        except ValueError:
            pass
    try:
        return base58.b58decode(text)
    except ValueError as e:
        raise ValueError(f"Invalid public key string: {value!r}") from e


SENTINEL = PublicKey(bytes(PUBLIC_KEY_LENGTH))


class Keypair:
    """An Ed25519 signing capability for one account.

    The 64-byte secret form is ``seed || public key``, which is what the
    login endpoint hands out hex-encoded.
    """

    def __init__(self, signing_key: SigningKey | None = None) -> None:
        self._signing_key = signing_key or SigningKey.generate()
        self._public_key = PublicKey(self._signing_key.verify_key.encode())

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        return cls(SigningKey(bytes(seed)))

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> "Keypair":
        """Rebuild a key pair from its 64-byte secret form.

        Raises:
            ValueError: If the length is wrong or the embedded public key
                does not match the seed.
        """
        secret_key = bytes(secret_key)
        if len(secret_key) != SECRET_KEY_LENGTH:
            raise ValueError(f"Invalid secret key length: {len(secret_key)} bytes")
        keypair = cls.from_seed(secret_key[:PUBLIC_KEY_LENGTH])
        if keypair.public_key.to_bytes() != secret_key[PUBLIC_KEY_LENGTH:]:
            raise ValueError("Secret key does not match its public key")
        return keypair

    @classmethod
    def from_hex(cls, secret_hex: str) -> "Keypair":
        return cls.from_secret_key(bytes.fromhex(secret_hex))

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def secret_key(self) -> bytes:
        return bytes(self._signing_key) + self._public_key.to_bytes()

    def sign(self, message: bytes) -> bytes:
        """Return the detached 64-byte signature of ``message``."""
        return self._signing_key.sign(message).signature

    def __repr__(self) -> str:
        return f"Keypair(public_key={self._public_key.to_base58()!r})"
