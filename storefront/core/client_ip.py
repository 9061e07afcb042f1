"""Client IP detection behind reverse proxies.

Security events and rate limits key on the client address. Behind a load
balancer request.client.host is the balancer, so X-Forwarded-For is read,
but only when the direct peer is a configured trusted proxy
(TRUSTED_PROXY_IPS). Clients can put anything in that header.

Usage:
    from storefront.core.client_ip import get_client_ip

    ip_address = get_client_ip(request)
"""

import ipaddress
import logging
from functools import lru_cache

from fastapi import Request

from storefront.core.config import settings

logger = logging.getLogger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache(maxsize=1)
def _get_trusted_proxy_networks() -> list[IPNetwork]:
    """Parse and cache TRUSTED_PROXY_IPS (comma-separated IPs or CIDRs)."""
    networks = []

    for entry in settings.TRUSTED_PROXY_IPS.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            # A bare address becomes a /32 or /128 network
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError as e:
            logger.warning(f"Invalid trusted proxy IP/network '{entry}': {e}")

    return networks


def _is_trusted_proxy(ip_str: str) -> bool:
    try:
        ip_addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip_addr in network for network in _get_trusted_proxy_networks())


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """
    Get the real client IP address from a request.

    Algorithm:
    1. Take the direct connection IP
    2. If it is not a trusted proxy, that is the client
    3. Otherwise walk X-Forwarded-For right to left and return the first
       address that is not a trusted proxy
    4. Then try X-Real-IP, then fall back to the direct IP

    Returns:
        Client IP address string, or "unknown" if it cannot be determined
    """
    direct_ip = request.client.host if request.client else None

    if not direct_ip:
        return "unknown"

    if not _is_trusted_proxy(direct_ip):
        return direct_ip

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        # Each proxy appends the address it received the connection from
        ips = [ip.strip() for ip in x_forwarded_for.split(",") if ip.strip()]

        for ip in reversed(ips):
            if not _valid_ip(ip):
                logger.warning("Invalid IP in X-Forwarded-For")
                continue
            if not _is_trusted_proxy(ip):
                return ip

        # Every hop is a trusted proxy
        if ips and _valid_ip(ips[0]):
            return ips[0]

    x_real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if x_real_ip and _valid_ip(x_real_ip):
        return x_real_ip

    return direct_ip


def clear_trusted_proxy_cache() -> None:
    """Clear the cached trusted proxy networks (settings changed, tests)."""
    _get_trusted_proxy_networks.cache_clear()
