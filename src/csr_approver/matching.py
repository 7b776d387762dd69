"""
Decide whether a pending CSR is the one the kubelet was expected to issue.

Every field must reproduce the expected request exactly. Groups and usages are
compared as sets, so an extra or missing entry rejects the CSR regardless of
the order the API server returns them in. Anything that cannot be read
(missing timestamp, undecodable request) rejects the CSR as well.
"""

import logging
from collections.abc import Iterable

from cryptography import x509

from .models import CSRTarget, PendingCSR
from .request import decode_request, parse_request

LOGGER = logging.getLogger(__name__)


def matches_identity(csr: PendingCSR, target: CSRTarget) -> bool:
    if not csr.pending:
        return False

    if csr.signer_name != target.signer_name or csr.username != target.username:
        return False

    if csr.groups != target.groups or csr.usages != target.usages:
        return False

    if csr.creation_timestamp is None:
        LOGGER.debug(f"Ignoring CSR {csr.name}: missing creation timestamp")
        return False

    # Created during a previous boot
    if target.not_before is not None and csr.creation_timestamp < target.not_before:
        LOGGER.debug(f"Ignoring CSR {csr.name}: created at {csr.creation_timestamp.isoformat()}")
        return False

    return True


def expected_san_entries(target: CSRTarget) -> tuple[str, ...]:
    return tuple(target.san.split(", ")) if target.san else ()


def matches_request(csr: PendingCSR, target: CSRTarget) -> bool:
    if not csr.request:
        return False

    try:
        rendered = parse_request(decode_request(csr.request))
    except (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        LOGGER.debug(f"Ignoring CSR {csr.name}: unreadable request ({e})")
        return False

    if rendered.subject != target.subject or rendered.san_entries != expected_san_entries(target):
        LOGGER.debug(
            f"Ignoring CSR {csr.name}: subject {rendered.subject!r}, SAN {rendered.san!r}"
        )
        return False

    return True


def is_match(csr: PendingCSR, target: CSRTarget) -> bool:
    return matches_identity(csr, target) and matches_request(csr, target)


def select_matches(pending: Iterable[PendingCSR], target: CSRTarget) -> list[PendingCSR]:
    return [csr for csr in pending if is_match(csr, target)]
