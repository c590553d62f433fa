import ipaddress
from typing import Optional

from fastapi import Request

from app.core.config import get_settings

_LOOPBACK_PEERS = {"testclient", "127.0.0.1", "::1", "localhost"}


def ip_in_allowlist(ip: Optional[str], allowlist: list[str]) -> bool:
    """True when ``ip`` equals an entry or falls inside one of its CIDR networks."""
    if not ip:
        return False
    if ip in allowlist:
        return True
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if ip_obj in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def is_trusted_proxy_peer(request: Request, trusted_proxy_cidrs: Optional[list[str]] = None) -> bool:
    peer_ip = request.client.host if request.client else None
    trusted = trusted_proxy_cidrs
    if trusted is None:
        trusted = get_settings().trusted_proxy_cidrs
    if not (peer_ip and trusted):
        return False

    # TestClient reports its peer as "testclient"; let tests opt in by name.
    if "testclient" in trusted and peer_ip in _LOOPBACK_PEERS:
        return True

    return ip_in_allowlist(peer_ip, trusted)


def get_client_ip(request: Request, trusted_proxy_cidrs: Optional[list[str]] = None) -> Optional[str]:
    """Extract the caller's IP.

    ``X-Real-IP`` and ``X-Forwarded-For`` are honoured only when the direct
    peer is a trusted proxy; otherwise they are ignored.
    """
    peer_ip = request.client.host if request.client else None
    if is_trusted_proxy_peer(request, trusted_proxy_cidrs):
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # Rightmost entry was appended by the nearest trusted proxy.
            parts = [p.strip() for p in forwarded.split(",") if p.strip()]
            if parts:
                return parts[-1]

    return peer_ip


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent") if request else None
