from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class NodeIdentity:
    name: str
    internal_ip: str


@dataclass(frozen=True)
class CSRTarget:
    """The exact shape of a CSR that may be approved for one flow."""

    signer_name: str
    username: str
    groups: frozenset[str]
    usages: frozenset[str]
    subject: str
    san: str = ""
    not_before: datetime | None = None


@dataclass(frozen=True)
class PendingCSR:
    name: str
    creation_timestamp: datetime | None
    signer_name: str | None
    username: str | None
    groups: frozenset[str]
    usages: frozenset[str]
    request: str | None
    pending: bool

    @classmethod
    def from_k8s(cls, csr: Any) -> "PendingCSR":
        """
        Build a PendingCSR from a `V1CertificateSigningRequest`, or from the
        equivalent dict as found in `kubectl get csr -o json` output.
        """
        if isinstance(csr, dict):
            metadata = csr.get("metadata") or {}
            spec = csr.get("spec") or {}
            status = csr.get("status") or {}
            return cls(
                name=metadata.get("name", ""),
                creation_timestamp=parse_timestamp(metadata.get("creationTimestamp")),
                signer_name=spec.get("signerName"),
                username=spec.get("username"),
                groups=frozenset(spec.get("groups") or ()),
                usages=frozenset(spec.get("usages") or ()),
                request=spec.get("request"),
                pending=not status.get("certificate") and not status.get("conditions"),
            )

        metadata = csr.metadata
        spec = csr.spec
        status = csr.status
        return cls(
            name=metadata.name,
            creation_timestamp=parse_timestamp(metadata.creation_timestamp),
            signer_name=spec.signer_name,
            username=spec.username,
            groups=frozenset(spec.groups or ()),
            usages=frozenset(spec.usages or ()),
            request=spec.request,
            pending=status is None or (not status.certificate and not status.conditions),
        )


def parse_timestamp(value: Any) -> datetime | None:
    """
    Return `value` as an aware UTC datetime, or None if it is missing or
    cannot be parsed. Naive datetimes are assumed to be UTC.
    """
    if isinstance(value, datetime):
        timestamp = value
    elif isinstance(value, str) and value:
        try:
            timestamp = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    return timestamp.astimezone(timezone.utc)
