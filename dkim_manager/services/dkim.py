"""
DKIM Key Material Service

Generates DKIM key pairs and re-derives public keys from stored private keys.
Private keys are stored in Kubernetes Secrets; the public half is published
in DNS, so it must always be recoverable from the private key alone.
"""

import base64
import re
from dataclasses import dataclass
from typing import ClassVar, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa

KEY_TYPE_RSA = "rsa"
KEY_TYPE_ED25519 = "ed25519"
KEY_TYPES = (KEY_TYPE_RSA, KEY_TYPE_ED25519)

RSA_KEY_LENGTHS = (1024, 2048, 4096)
DEFAULT_KEY_LENGTH = 2048

RSA_PEM_TYPE = "RSA PRIVATE KEY"
PKCS8_PEM_TYPE = "PRIVATE KEY"

_PEM_BEGIN = re.compile(rb"-----BEGIN ([A-Z0-9 ]+)-----")


class KeyMaterialError(Exception):
    """Base exception for key material errors."""
    pass


class KeyValidationError(KeyMaterialError):
    """Key material is malformed or does not match the declared algorithm."""
    pass


class KeyGenerationError(KeyMaterialError):
    """The cryptographic backend failed to produce a key."""
    pass


@dataclass(frozen=True)
class RSAKey:
    """RSA key algorithm with a fixed modulus size."""
    bits: int = DEFAULT_KEY_LENGTH
    key_type: ClassVar[str] = KEY_TYPE_RSA

    def __post_init__(self):
        if self.bits not in RSA_KEY_LENGTHS:
            raise KeyValidationError(f"unsupported RSA key length: {self.bits}")


@dataclass(frozen=True)
class Ed25519Key:
    """Ed25519 key algorithm."""
    key_type: ClassVar[str] = KEY_TYPE_ED25519


KeyAlgorithm = Union[RSAKey, Ed25519Key]


@dataclass(frozen=True)
class KeyMaterial:
    """A DKIM key pair."""
    private_pem: bytes
    public_key: str  # base64 DER SubjectPublicKeyInfo
    algorithm: KeyAlgorithm

    @property
    def key_type(self) -> str:
        return self.algorithm.key_type


def key_algorithm(key_type: str, key_length: int = DEFAULT_KEY_LENGTH) -> KeyAlgorithm:
    """
    Build the key algorithm for a declared key type and length.

    Args:
        key_type: 'rsa' or 'ed25519'
        key_length: RSA modulus size; ignored for ed25519

    Raises:
        KeyValidationError: On an unknown key type or unsupported RSA length
    """
    if key_type == KEY_TYPE_RSA:
        return RSAKey(bits=key_length)
    if key_type == KEY_TYPE_ED25519:
        return Ed25519Key()
    raise KeyValidationError(f"invalid key type specified: {key_type!r}")


def _encode_public_key(public_key) -> str:
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode('ascii')


def _pem_block_type(private_pem: bytes) -> str:
    """Return the type of the first PEM block, or '' if there is none."""
    match = _PEM_BEGIN.search(private_pem)
    if not match:
        return ""
    return match.group(1).decode('ascii')


def _load_private_key(private_pem: bytes):
    try:
        return serialization.load_pem_private_key(private_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyValidationError(f"failed to parse private key: {e}") from e


def generate_rsa(bits: int = DEFAULT_KEY_LENGTH) -> KeyMaterial:
    """
    Generate an RSA key pair.

    Args:
        bits: RSA key size in bits (1024, 2048 or 4096)

    Returns:
        KeyMaterial with a PKCS#1 ('RSA PRIVATE KEY') PEM private key

    Raises:
        KeyValidationError: On an unsupported key size
        KeyGenerationError: If the backend fails to generate the key
    """
    algorithm = RSAKey(bits=bits)
    try:
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=bits,
        )
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption()
        )
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyGenerationError(f"failed to generate RSA key: {e}") from e

    return KeyMaterial(
        private_pem=private_pem,
        public_key=_encode_public_key(private_key.public_key()),
        algorithm=algorithm,
    )


def generate_ed25519() -> KeyMaterial:
    """
    Generate an Ed25519 key pair.

    Returns:
        KeyMaterial with a PKCS#8 ('PRIVATE KEY') PEM private key

    Raises:
        KeyGenerationError: If the backend fails to generate the key
    """
    try:
        private_key = ed25519.Ed25519PrivateKey.generate()
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyGenerationError(f"failed to generate ed25519 key: {e}") from e

    return KeyMaterial(
        private_pem=private_pem,
        public_key=_encode_public_key(private_key.public_key()),
        algorithm=Ed25519Key(),
    )


def derive_rsa_public(private_pem: bytes, expected_bits: int) -> str:
    """
    Compute the base64 public key from a PKCS#1 RSA private key.

    Args:
        private_pem: PEM bytes with an 'RSA PRIVATE KEY' block
        expected_bits: The modulus size the key must have

    Returns:
        Base64-encoded DER public key

    Raises:
        KeyValidationError: On a wrong block type, parse error or size mismatch
    """
    if _pem_block_type(private_pem) != RSA_PEM_TYPE:
        raise KeyValidationError("failed to decode PEM block containing RSA private key")

    private_key = _load_private_key(private_pem)
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise KeyValidationError("not an RSA private key")
    if private_key.key_size != expected_bits:
        raise KeyValidationError(
            f"key size mismatch: expected {expected_bits} bits, got {private_key.key_size} bits"
        )
    return _encode_public_key(private_key.public_key())


def derive_ed25519_public(private_pem: bytes) -> str:
    """
    Compute the base64 public key from a PKCS#8 Ed25519 private key.

    Raises:
        KeyValidationError: On a wrong block type, wrong algorithm or parse error
    """
    if _pem_block_type(private_pem) != PKCS8_PEM_TYPE:
        raise KeyValidationError("failed to decode PEM block containing ed25519 private key")

    private_key = _load_private_key(private_pem)
    if not isinstance(private_key, ed25519.Ed25519PrivateKey):
        raise KeyValidationError("not an ed25519 private key")
    return _encode_public_key(private_key.public_key())


def generate_keypair(algorithm: KeyAlgorithm) -> KeyMaterial:
    """Generate a fresh key pair for the given algorithm."""
    if isinstance(algorithm, RSAKey):
        return generate_rsa(algorithm.bits)
    return generate_ed25519()


def derive_public_key(algorithm: KeyAlgorithm, private_pem: bytes) -> str:
    """Re-derive the published public key from stored private key bytes."""
    if isinstance(algorithm, RSAKey):
        return derive_rsa_public(private_pem, algorithm.bits)
    return derive_ed25519_public(private_pem)
