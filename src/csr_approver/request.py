"""
Render the Subject and Subject Alternative Name of a certificate request as text.

The expected values are written in the form `openssl req -noout -subject` and
`openssl req -noout -text` print them, e.g.

    subject=O = system:nodes, CN = system:node:node-7
    DNS:node-7, IP Address:2001:DB8:0:0:0:0:0:1

so the same rendering is reproduced here from the parsed request.
"""

import base64
import ipaddress
from dataclasses import dataclass

from cryptography import x509
from cryptography.x509.oid import NameOID

#: OpenSSL short names for the attributes found in kubelet requests
OID_SHORT_NAMES = {
    NameOID.COMMON_NAME: "CN",
    NameOID.COUNTRY_NAME: "C",
    NameOID.LOCALITY_NAME: "L",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.STREET_ADDRESS: "street",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.SERIAL_NUMBER: "serialNumber",
    NameOID.EMAIL_ADDRESS: "emailAddress",
    NameOID.DOMAIN_COMPONENT: "DC",
    NameOID.USER_ID: "UID",
}


#: Characters that make OpenSSL's one-line format quote a value
QUOTED_CHARACTERS = frozenset(',+;<>"\\')


@dataclass(frozen=True)
class RenderedRequest:
    subject: str
    san_entries: tuple[str, ...] = ()

    @property
    def san(self) -> str:
        return ", ".join(self.san_entries)


def decode_request(request: str | bytes) -> bytes:
    """Decode the base64 `spec.request` field of a CSR into PEM bytes."""
    return base64.b64decode(request, validate=True)


def render_value(value: str) -> str:
    """
    Render an attribute value as `openssl -nameopt oneline` does.

    Values containing separators, or with leading or trailing spaces, are
    double quoted; `"` and `\\` are backslash escaped and control characters
    are written as `\\XX`.
    """
    quoted = (
        any(c in QUOTED_CHARACTERS for c in value)
        or value.startswith(("#", " "))
        or value.endswith(" ")
    )

    escaped = []
    for c in value:
        if c in '"\\':
            escaped.append(f"\\{c}")
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            escaped.append(f"\\{ord(c):02X}")
        else:
            escaped.append(c)

    rendered = "".join(escaped)
    return f'"{rendered}"' if quoted else rendered


def render_name(name: x509.Name) -> str:
    rdns = []
    for rdn in name.rdns:
        attributes = [
            f"{OID_SHORT_NAMES.get(attr.oid, attr.oid.dotted_string)} = {render_value(attr.value)}"
            for attr in rdn
        ]
        rdns.append(" + ".join(attributes))

    return ", ".join(rdns)


def render_ip(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    if address.version == 4:
        return str(address)

    # OpenSSL prints every group, without leading zeroes
    return ":".join(f"{int(group, 16):X}" for group in address.exploded.split(":"))


def render_general_name(general_name: x509.GeneralName) -> str:
    if isinstance(general_name, x509.DNSName):
        return f"DNS:{general_name.value}"
    if isinstance(general_name, x509.IPAddress):
        return f"IP Address:{render_ip(general_name.value)}"
    if isinstance(general_name, x509.RFC822Name):
        return f"email:{general_name.value}"
    if isinstance(general_name, x509.UniformResourceIdentifier):
        return f"URI:{general_name.value}"
    if isinstance(general_name, x509.DirectoryName):
        return f"DirName:{render_name(general_name.value)}"
    if isinstance(general_name, x509.RegisteredID):
        return f"Registered ID:{general_name.value.dotted_string}"

    return "othername:<unsupported>"


def render_san_entries(csr: x509.CertificateSigningRequest) -> tuple[str, ...]:
    """Render each SAN entry, or nothing if the request has no SAN extension."""
    try:
        extension = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return ()

    return tuple(render_general_name(name) for name in extension.value)


def parse_request(pem: bytes) -> RenderedRequest:
    csr = x509.load_pem_x509_csr(pem)
    return RenderedRequest(
        subject=f"subject={render_name(csr.subject)}",
        san_entries=render_san_entries(csr),
    )
