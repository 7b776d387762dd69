"""
Resolve the local node's identity and derive the CSRs the kubelet will issue.
"""

import logging
import time
from collections.abc import Callable

from .approver import POLL_INTERVAL
from .cluster import TRANSIENT_ERRORS, ClusterClient
from .ipv6 import expand_ipv6, is_ipv6
from .models import CSRTarget, NodeIdentity

LOGGER = logging.getLogger(__name__)

MACHINE_CONFIG_NAMESPACE = "openshift-machine-config-operator"

BOOTSTRAP_SIGNER = "kubernetes.io/kube-apiserver-client-kubelet"
BOOTSTRAP_USERNAME = f"system:serviceaccount:{MACHINE_CONFIG_NAMESPACE}:node-bootstrapper"
BOOTSTRAP_GROUPS = frozenset(
    [
        "system:serviceaccounts",
        f"system:serviceaccounts:{MACHINE_CONFIG_NAMESPACE}",
        "system:authenticated",
    ]
)
BOOTSTRAP_USAGES = frozenset(["digital signature", "client auth"])

SERVING_SIGNER = "kubernetes.io/kubelet-serving"
SERVING_GROUPS = frozenset(["system:nodes", "system:authenticated"])
SERVING_USAGES = frozenset(["digital signature", "server auth"])


def node_subject(node_name: str) -> str:
    return f"subject=O = system:nodes, CN = system:node:{node_name}"


def resolve_node_name(
    cluster: ClusterClient,
    interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] | None = None,
) -> str:
    """Poll the node listing until it holds exactly one named node."""
    sleep = sleep or time.sleep
    while True:
        try:
            names = [node.metadata.name for node in cluster.list_nodes() if node.metadata.name]
        except TRANSIENT_ERRORS as e:
            LOGGER.warning(f"Unable to list nodes: {e}")
            names = []

        if len(names) == 1:
            return names[0]

        if len(names) > 1:
            LOGGER.warning(f"Expected a single node, found {len(names)}: {', '.join(names)}")

        sleep(interval)


def _internal_ip(node) -> str | None:
    if node.status is None or not node.status.addresses:
        return None

    for address in node.status.addresses:
        if address.type == "InternalIP" and address.address and address.address != "null":
            return address.address

    return None


def resolve_node_internal_ip(
    cluster: ClusterClient,
    node_name: str,
    interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] | None = None,
) -> str:
    """Poll node status until the node reports an InternalIP address."""
    sleep = sleep or time.sleep
    while True:
        try:
            nodes = [node for node in cluster.list_nodes() if node.metadata.name == node_name]
        except TRANSIENT_ERRORS as e:
            LOGGER.warning(f"Unable to list nodes: {e}")
            nodes = []

        for node in nodes:
            address = _internal_ip(node)
            if address:
                return address

        sleep(interval)


def resolve_node_identity(
    cluster: ClusterClient,
    node_name: str,
    interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] | None = None,
) -> NodeIdentity:
    address = resolve_node_internal_ip(cluster, node_name, interval=interval, sleep=sleep)
    return NodeIdentity(name=node_name, internal_ip=address)


def build_bootstrap_target(node_name: str) -> CSRTarget:
    """The node-bootstrapper CSR, issued when the kubelet client certificate expired."""
    return CSRTarget(
        signer_name=BOOTSTRAP_SIGNER,
        username=BOOTSTRAP_USERNAME,
        groups=BOOTSTRAP_GROUPS,
        usages=BOOTSTRAP_USAGES,
        subject=node_subject(node_name),
        san="",
    )


def expected_serving_san(node_name: str, node_ip: str) -> str:
    if is_ipv6(node_ip):
        node_ip = expand_ipv6(node_ip)

    return f"DNS:{node_name}, IP Address:{node_ip}"


def build_server_target(node: NodeIdentity) -> CSRTarget:
    """The system node CSR, issued when the kubelet serving certificate expired."""
    return CSRTarget(
        signer_name=SERVING_SIGNER,
        username=f"system:node:{node.name}",
        groups=SERVING_GROUPS,
        usages=SERVING_USAGES,
        subject=node_subject(node.name),
        san=expected_serving_san(node.name, node.internal_ip),
    )
