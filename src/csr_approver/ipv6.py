"""
IPv6 expansion for comparing node addresses against certificate SAN text.

OpenSSL renders an IPv6 SAN entry as eight uppercase, colon separated groups,
with no `::` compression. Node status reports the compressed form, so the
address has to be expanded before the two can be compared as strings.
"""

import ipaddress
import string

IPV6_GROUPS = 8


def is_ipv6(address: str) -> bool:
    return ":" in address


def _embedded_ipv4_to_groups(address: str) -> str:
    """Rewrite a trailing dotted-quad (e.g. `::ffff:10.0.0.1`) as two hex groups."""
    head, _, tail = address.rpartition(":")
    if "." not in tail:
        return address

    try:
        packed = ipaddress.IPv4Address(tail).packed
    except ipaddress.AddressValueError as e:
        raise ValueError(f"Invalid IPv6 address: {address}") from e

    high = (packed[0] << 8) | packed[1]
    low = (packed[2] << 8) | packed[3]
    return f"{head}:{high:x}:{low:x}"


def expand_ipv6(address: str) -> str:
    """
    Expand an IPv6 address into eight explicit groups, in uppercase.

    Elided groups are filled in with `0`. Groups that are present keep their
    digits, so `abcd:e::43:2` becomes `ABCD:E:0:0:0:0:43:2` and `1:2:3::`
    becomes `1:2:3:0:0:0:0:0`.
    """
    address = _embedded_ipv4_to_groups(address.strip())

    head, elided, tail = address.partition("::")
    if elided:
        if "::" in tail:
            raise ValueError(f"Invalid IPv6 address: {address}")

        head_groups = head.split(":") if head else []
        tail_groups = tail.split(":") if tail else []
        missing = IPV6_GROUPS - len(head_groups) - len(tail_groups)
        if missing < 1:
            raise ValueError(f"Invalid IPv6 address: {address}")
        groups = head_groups + ["0"] * missing + tail_groups
    else:
        groups = address.split(":")

    if len(groups) != IPV6_GROUPS or not all(_is_group(g) for g in groups):
        raise ValueError(f"Invalid IPv6 address: {address}")

    return ":".join(groups).upper()


def _is_group(group: str) -> bool:
    return 1 <= len(group) <= 4 and all(c in string.hexdigits for c in group)
