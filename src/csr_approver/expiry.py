import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509

LOGGER = logging.getLogger(__name__)

KUBELET_CLIENT_CERT = "/var/lib/kubelet/pki/kubelet-client-current.pem"
KUBELET_SERVER_CERT = "/var/lib/kubelet/pki/kubelet-server-current.pem"

EXPIRY_MARGIN = timedelta(seconds=1200)


@dataclass(frozen=True)
class CertificateArtifact:
    label: str
    path: Path
    subject: str
    not_after: datetime


def read_certificate(path: str | Path, label: str = "") -> CertificateArtifact:
    path = Path(path)
    cert = x509.load_pem_x509_certificate(path.read_bytes())
    return CertificateArtifact(
        label=label or path.name,
        path=path,
        subject=cert.subject.rfc4514_string(),
        not_after=cert.not_valid_after_utc,
    )


def needs_renewal(
    artifact: CertificateArtifact,
    margin: timedelta = EXPIRY_MARGIN,
    now: datetime | None = None,
) -> bool:
    """Whether the certificate has expired, or will within `margin`."""
    now = now or datetime.now(timezone.utc)
    return artifact.not_after <= now + margin


def check_certificate(
    label: str,
    path: str | Path,
    margin: timedelta = EXPIRY_MARGIN,
    now: datetime | None = None,
) -> bool:
    """
    Check the certificate at `path`, returning True if its CSR flow must run.

    A certificate that can't be read is treated as expired, since the kubelet
    will request a new one in that case too.
    """
    try:
        artifact = read_certificate(path, label=label)
    except (OSError, ValueError) as e:
        LOGGER.warning(f"{label} certificate could not be read from {path}: {e}")
        return True

    if needs_renewal(artifact, margin=margin, now=now):
        LOGGER.info(f"{artifact.label} certificate expiry: {artifact.not_after.isoformat()}")
        return True

    LOGGER.info(f"{label} certificate is valid")
    return False
