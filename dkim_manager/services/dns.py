"""
DKIM DNS Record Encoder

Builds the DKIM policy value for a public key and splits it into
TXT character-strings, which the DNS wire format limits to 255 bytes each.
"""

from dataclasses import dataclass, field

from .dkim import KEY_TYPE_ED25519, KEY_TYPE_RSA

TXT_SEGMENT_MAX_BYTES = 255
RECORD_TYPE_TXT = "TXT"

_POLICY_HEADERS = {
    KEY_TYPE_RSA: "v=DKIM1; h=sha256; k=rsa;",
    KEY_TYPE_ED25519: "v=DKIM1; k=ed25519;",
}


def dkim_dns_name(selector: str, domain: str) -> str:
    """
    Get the DNS record name for a DKIM key.

    e.g., ('s1', 'example.com') -> 's1._domainkey.example.com'
    """
    return f"{selector}._domainkey.{domain}"


def build_policy_value(public_b64: str, key_type: str) -> str:
    """
    Build the DKIM TXT record value for a public key.

    Args:
        public_b64: Base64-encoded public key
        key_type: 'rsa' or 'ed25519'

    Returns:
        e.g. 'v=DKIM1; h=sha256; k=rsa; p=MIIB...', or '' for an unknown key type
    """
    header = _POLICY_HEADERS.get(key_type)
    if header is None:
        return ""
    return f"{header} p={public_b64}"


def chunk(value: str, size: int = TXT_SEGMENT_MAX_BYTES) -> list[str]:
    """
    Split a TXT value into consecutive pieces of at most ``size`` bytes.

    Pieces are cut on UTF-8 byte boundaries without splitting a character.
    Joining the pieces gives back the original value.
    """
    data = value.encode('utf-8')
    if len(data) <= size:
        return [value]

    pieces = []
    start = 0
    while start < len(data):
        end = min(start + size, len(data))
        # back off continuation bytes
        while end < len(data) and (data[end] & 0xC0) == 0x80:
            end -= 1
        pieces.append(data[start:end].decode('utf-8'))
        start = end
    return pieces


@dataclass
class DNSRecord:
    """A DKIM TXT record ready to be published as a DNSEndpoint endpoint."""
    dns_name: str
    ttl: int
    segments: list[str] = field(default_factory=list)
    record_type: str = RECORD_TYPE_TXT

    @property
    def value(self) -> str:
        """The unsplit policy value."""
        return "".join(self.segments)

    def targets(self) -> list[str]:
        """
        Endpoint targets: one TXT record made of quoted character-strings.

        e.g. ['"v=DKIM1; h=sha256; k=rsa; p=MIIB...(255 bytes)" "...rest"']
        """
        return [" ".join(f'"{segment}"' for segment in self.segments)]

    def to_endpoint(self) -> dict:
        return {
            "dnsName": self.dns_name,
            "recordTTL": self.ttl,
            "recordType": self.record_type,
            "targets": self.targets(),
        }


def build_dns_record(selector: str, domain: str, ttl: int, key_type: str, public_b64: str) -> DNSRecord:
    """
    Build the DKIM record for a public key.

    Args:
        selector: DKIM selector
        domain: Signing domain
        ttl: Record TTL in seconds
        key_type: 'rsa' or 'ed25519'
        public_b64: Base64-encoded public key

    Returns:
        DNSRecord with the chunked policy value
    """
    return DNSRecord(
        dns_name=dkim_dns_name(selector, domain),
        ttl=ttl,
        segments=chunk(build_policy_value(public_b64, key_type)),
    )
