"""
dkim-manager Services

Key material, DNS record encoding, admission rules and version conversion.
"""

from .dkim import (
    KeyMaterial,
    KeyMaterialError,
    KeyValidationError,
    KeyGenerationError,
    RSAKey,
    Ed25519Key,
    key_algorithm,
    generate_keypair,
    derive_public_key,
)
from .dns import DNSRecord, build_dns_record, build_policy_value, chunk, dkim_dns_name

__all__ = [
    'KeyMaterial',
    'KeyMaterialError',
    'KeyValidationError',
    'KeyGenerationError',
    'RSAKey',
    'Ed25519Key',
    'key_algorithm',
    'generate_keypair',
    'derive_public_key',
    'DNSRecord',
    'build_dns_record',
    'build_policy_value',
    'chunk',
    'dkim_dns_name',
]
