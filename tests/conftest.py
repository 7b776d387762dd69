import base64
import ipaddress
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from kubernetes import client

from csr_approver.identity import (
    BOOTSTRAP_GROUPS,
    BOOTSTRAP_SIGNER,
    BOOTSTRAP_USAGES,
    BOOTSTRAP_USERNAME,
    SERVING_GROUPS,
    SERVING_SIGNER,
    SERVING_USAGES,
)
from csr_approver.models import PendingCSR

NODE_NAME = "node-7"
NODE_IPV6 = "2001:db8::1"
STARTED = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def node_name_subject(node_name: str = NODE_NAME) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "system:nodes"),
            x509.NameAttribute(NameOID.COMMON_NAME, f"system:node:{node_name}"),
        ]
    )


@pytest.fixture(scope="session")
def private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def make_request(private_key):
    """Build a base64 encoded PEM certificate request, as found in `spec.request`."""

    def _make_request(
        subject: x509.Name | None = None,
        dns_names: tuple[str, ...] = (),
        ip_addresses: tuple[str, ...] = (),
    ) -> str:
        builder = x509.CertificateSigningRequestBuilder().subject_name(
            subject or node_name_subject()
        )

        names = [x509.DNSName(name) for name in dns_names]
        names += [x509.IPAddress(ipaddress.ip_address(address)) for address in ip_addresses]
        if names:
            builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)

        csr = builder.sign(private_key, hashes.SHA256())
        return base64.b64encode(csr.public_bytes(serialization.Encoding.PEM)).decode()

    return _make_request


@pytest.fixture
def serving_csr(make_request):
    """A system node CSR for NODE_NAME, as issued when the serving certificate expired."""
    return PendingCSR(
        name="csr-serving",
        creation_timestamp=STARTED + timedelta(minutes=1),
        signer_name=SERVING_SIGNER,
        username=f"system:node:{NODE_NAME}",
        groups=SERVING_GROUPS,
        usages=SERVING_USAGES,
        request=make_request(dns_names=(NODE_NAME,), ip_addresses=(NODE_IPV6,)),
        pending=True,
    )


@pytest.fixture
def bootstrap_csr(make_request):
    """A node-bootstrapper CSR for NODE_NAME, as issued when the client certificate expired."""
    return PendingCSR(
        name="csr-bootstrap",
        creation_timestamp=STARTED + timedelta(minutes=1),
        signer_name=BOOTSTRAP_SIGNER,
        username=BOOTSTRAP_USERNAME,
        groups=BOOTSTRAP_GROUPS,
        usages=BOOTSTRAP_USAGES,
        request=make_request(),
        pending=True,
    )


def make_node(name: str = NODE_NAME, addresses: list[tuple[str, str]] | None = None):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name),
        status=client.V1NodeStatus(
            addresses=[
                client.V1NodeAddress(type=address_type, address=address)
                for address_type, address in (addresses or [])
            ]
        ),
    )


class FakeCluster:
    """Stands in for ClusterClient, serving canned listings and recording approvals."""

    def __init__(self, nodes=None, csrs=None, failing=()):
        self.nodes = nodes if nodes is not None else []
        self.csrs = csrs if csrs is not None else []
        self.failing = set(failing)
        self.approved = []
        self.list_csrs_calls = 0

    def list_nodes(self):
        return self.nodes

    def list_csrs(self):
        self.list_csrs_calls += 1
        return self.csrs

    def approve_csr(self, name):
        if name in self.failing:
            return False

        self.approved.append(name)
        return True


class RecordingSleep:
    """A sleep replacement that records intervals, and stops the caller after `limit` calls."""

    class Stop(Exception):
        pass

    def __init__(self, limit: int | None = None):
        self.limit = limit
        self.calls = []

    def __call__(self, interval):
        self.calls.append(interval)
        if self.limit is not None and len(self.calls) >= self.limit:
            raise RecordingSleep.Stop()
