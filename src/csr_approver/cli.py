#!/usr/bin/env python3
"""
Approve the kubelet CSRs needed to recover a node whose certificates expired
while it was out of service, e.g. after rolling back to an older stateroot.

If the kubelet client certificate has expired (or soon will), the kubelet
falls back to its bootstrap credentials and issues a node-bootstrapper CSR. If
the serving certificate has expired it issues a system node CSR. Until those
are approved the control plane can't schedule pods, so this watches for each
of them and approves the ones that exactly match what the kubelet would
request for this node.
"""

import logging
import sys
from datetime import timedelta
from pathlib import Path

import click
import kubernetes.config
import sentry_sdk

from .approver import POLL_INTERVAL, approve_csrs, boot_time
from .cluster import ClusterClient
from .expiry import (
    EXPIRY_MARGIN,
    KUBELET_CLIENT_CERT,
    KUBELET_SERVER_CERT,
    check_certificate,
)
from .identity import (
    build_bootstrap_target,
    build_server_target,
    resolve_node_identity,
    resolve_node_name,
)

LOGGER = logging.getLogger(__name__)

ENVVAR_PREFIX = "CSR_APPROVER"


def configure_logging(level: str) -> None:
    prog = Path(sys.argv[0]).name or "csr-approver"
    logging.basicConfig(
        level=level,
        format=f"{prog}: %(message)s",
        stream=sys.stderr,
    )


@click.command(
    help="Approve kubelet CSRs after control plane certificate expiry",
    context_settings={"auto_envvar_prefix": ENVVAR_PREFIX},
)
@click.option(
    "--client-cert",
    type=click.Path(dir_okay=False),
    default=KUBELET_CLIENT_CERT,
    show_default=True,
    help="Kubelet client certificate",
)
@click.option(
    "--server-cert",
    type=click.Path(dir_okay=False),
    default=KUBELET_SERVER_CERT,
    show_default=True,
    help="Kubelet serving certificate",
)
@click.option(
    "--interval",
    type=click.FloatRange(min=0),
    default=POLL_INTERVAL,
    show_default=True,
    help="Seconds to wait between polls of the API server",
)
@click.option(
    "--expiry-margin",
    type=click.IntRange(min=0),
    default=int(EXPIRY_MARGIN.total_seconds()),
    show_default=True,
    help="Treat certificates expiring within this many seconds as expired",
)
@click.option(
    "--since-boot",
    is_flag=True,
    help="Accept CSRs created since the host booted, rather than since polling started",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def main(
    client_cert: str,
    server_cert: str,
    *,
    interval: float,
    expiry_margin: int,
    since_boot: bool,
    log_level: str,
):
    configure_logging(log_level.upper())
    sentry_sdk.init(traces_sample_rate=1.0)

    try:
        cluster = ClusterClient.from_config()
    except kubernetes.config.ConfigException as e:
        raise click.ClickException(f"Unable to load kubernetes config: {e}") from e

    margin = timedelta(seconds=expiry_margin)
    not_before = boot_time() if since_boot else None

    node_name = resolve_node_name(cluster, interval=interval)
    LOGGER.info(f"Node name: {node_name}")

    if check_certificate("kubelet-client", client_cert, margin=margin):
        # Approving this CSR allows scheduling of pods
        approve_csrs(
            cluster,
            build_bootstrap_target(node_name),
            interval=interval,
            not_before=not_before,
        )

    if check_certificate("kubelet-server", server_cert, margin=margin):
        node = resolve_node_identity(cluster, node_name, interval=interval)
        LOGGER.info(f"Node InternalIP: {node.internal_ip}")
        approve_csrs(
            cluster,
            build_server_target(node),
            interval=interval,
            not_before=not_before,
        )


if __name__ == "__main__":
    main()
