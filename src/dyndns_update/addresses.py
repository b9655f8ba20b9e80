"""Public address discovery through "what is my IP" services."""

from __future__ import annotations

import ipaddress
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple, Type, Union

import requests

from .errors import AddressResolutionError

logger = logging.getLogger(__name__)

AddressPair = Tuple[Optional[ipaddress.IPv4Address], Optional[ipaddress.IPv6Address]]

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def address_tuple_to_string(addresses: AddressPair) -> str:
    ipv4, ipv6 = addresses
    if ipv4 is None and ipv6 is None:
        return "no addresses"
    if ipv4 is None:
        return f"{ipv6} (IPv6)"
    if ipv6 is None:
        return f"{ipv4} (IPv4)"
    return f"both {ipv4} (IPv4) and {ipv6} (IPv6)"


def get_ip_address(
    session: requests.Session,
    url: Optional[str],
    address_type: Type[IPAddress],
    timeout: Optional[float] = None,
) -> Optional[IPAddress]:
    """Query one discovery service.

    Returns None when ``url`` is not configured. Raises on transport errors,
    non-2xx status and unparsable bodies.
    """
    if not url:
        return None

    ip_version = "IPv4" if address_type is ipaddress.IPv4Address else "IPv6"
    logger.info(f"Getting {ip_version} address")

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        if not 200 <= response.status_code < 300:
            raise requests.exceptions.HTTPError(
                f"Unexpected status {response.status_code}", response=response
            )
    except requests.exceptions.RequestException as e:
        logger.error(f"Error while getting {ip_version} address from {url}: {e}")
        raise

    try:
        return address_type(response.text.strip())
    except ValueError as e:
        logger.error(f"Error while parsing response for {ip_version}: {e}")
        raise


def get_ip_addresses(
    session: requests.Session,
    ipv4_service_url: Optional[str],
    ipv6_service_url: Optional[str],
    timeout: Optional[float] = None,
) -> AddressPair:
    """Resolve both address families concurrently.

    A failed family resolves to None. Raises AddressResolutionError when the
    pair ends up empty, since no record could be reconciled then.
    """
    if not ipv4_service_url and not ipv6_service_url:
        raise AddressResolutionError("No IP discovery service configured")

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="resolve") as pool:
        v4_future = pool.submit(
            get_ip_address, session, ipv4_service_url, ipaddress.IPv4Address, timeout
        )
        v6_future = pool.submit(
            get_ip_address, session, ipv6_service_url, ipaddress.IPv6Address, timeout
        )

    results = []
    for future in (v4_future, v6_future):
        try:
            results.append(future.result())
        except (requests.exceptions.RequestException, ValueError):
            # Already logged by get_ip_address
            results.append(None)

    addresses: AddressPair = (results[0], results[1])
    if addresses == (None, None):
        logger.error("Neither an IPv4 nor an IPv6 address could be resolved")
        raise AddressResolutionError("No addresses returned")
    return addresses
