import logging
from datetime import datetime, timezone

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from .models import PendingCSR

LOGGER = logging.getLogger(__name__)

APPROVAL_REASON = "RollbackCSRApprove"
APPROVAL_MESSAGE = "This CSR was approved by csr-approver after certificate expiry on rollback"

#: Errors from the API server, or from reaching it, that are worth retrying
TRANSIENT_ERRORS = (ApiException, HTTPError, OSError)


def get_k8s_clients() -> tuple[client.CoreV1Api, client.CertificatesV1Api]:
    """Load kubernetes config and return API clients"""
    config.load_config()

    return client.CoreV1Api(), client.CertificatesV1Api()


class ClusterClient:
    """The node and CSR operations the approver needs from the API server."""

    def __init__(
        self,
        v1_client: client.CoreV1Api,
        cert_client: client.CertificatesV1Api,
    ):
        self.v1_client = v1_client
        self.cert_client = cert_client

    @classmethod
    def from_config(cls) -> "ClusterClient":
        return cls(*get_k8s_clients())

    def list_nodes(self) -> list[client.V1Node]:
        return self.v1_client.list_node().items

    def list_csrs(self) -> list[PendingCSR]:
        csr_list = self.cert_client.list_certificate_signing_request()
        return [PendingCSR.from_k8s(csr) for csr in csr_list.items]

    def approve_csr(self, name: str) -> bool:
        """Add an Approved condition to the named CSR, returning whether it took."""
        try:
            csr = self.cert_client.read_certificate_signing_request(name=name)
            if csr.status is None:
                csr.status = client.V1CertificateSigningRequestStatus()

            now = datetime.now(timezone.utc)
            csr.status.conditions = (csr.status.conditions or []) + [
                client.V1CertificateSigningRequestCondition(
                    type="Approved",
                    status="True",
                    reason=APPROVAL_REASON,
                    message=APPROVAL_MESSAGE,
                    last_transition_time=now,
                    last_update_time=now,
                )
            ]
            self.cert_client.replace_certificate_signing_request_approval(name=name, body=csr)
        except TRANSIENT_ERRORS as e:
            LOGGER.error(f"Failed to approve CSR: {name} ({e})")
            return False

        return True
