"""Cloudflare API v4 boundary: list records for one search rule, patch one record."""

from __future__ import annotations

import json
from typing import Any, List, Optional

import requests
from pydantic import ValidationError

from .addresses import AddressPair
from .config import DEFAULT_API_BASE_URL, DEFAULT_TIMEOUT_SECONDS, SearchRule, Zone, auth_header
from .errors import (
    EmptyResultError,
    EnvelopeError,
    MissingRecordIdError,
    NoAddressError,
    ProviderError,
    WrongRecordTypeError,
)
from .records import ListResponse, PatchResponse, Record, RecordType


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def _decode_envelope(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise EnvelopeError(f"Response for {what} is not valid JSON: {e}") from e


def desired_content(record: Record, addresses: AddressPair) -> str:
    """Return the address string ``record`` should carry, or raise why it cannot be patched."""
    ipv4, ipv6 = addresses
    if ipv4 is None and ipv6 is None:
        raise NoAddressError("No addresses provided")

    if record.type == RecordType.A.value:
        if ipv4 is None:
            raise NoAddressError("No IPv4 address found to patch A record")
        return str(ipv4)
    if record.type == RecordType.AAAA.value:
        if ipv6 is None:
            raise NoAddressError("No IPv6 address found to patch AAAA record")
        return str(ipv6)
    raise WrongRecordTypeError(f"Provided record is not an IP record (type {record.type})")


class CloudflareAPI:
    """Thin client for the two DNS record endpoints the reconciler needs.

    The session is shared by every concurrent call of a pass; requests only
    reads from it after construction.
    """

    def __init__(
        self,
        session: requests.Session,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _records_url(self, zone: Zone) -> str:
        return f"{self._base_url}/zones/{zone.identifier}/dns_records"

    def _headers(self, zone: Zone) -> dict:
        key, value = auth_header(zone.auth)
        return {"Content-Type": "application/json", key: value}

    def list_records_for_rule(self, zone: Zone, index: int, rule: SearchRule) -> ListResponse:
        """Run one search rule against the zone.

        Raises ``ProviderError`` on a non-2xx status, ``EnvelopeError`` when the
        body is not a list envelope and ``EmptyResultError`` when nothing matched.
        Transport errors propagate as ``requests.exceptions.RequestException``.
        """
        response = self._session.get(
            self._records_url(zone),
            params=rule.to_params(),
            headers=self._headers(zone),
            timeout=self._timeout,
        )
        text = response.text

        if not is_success_status(response.status_code):
            raise ProviderError(response.status_code, f"listing records for rule {index}", text)

        try:
            result = ListResponse.model_validate(_decode_envelope(text, f"rule {index}"))
        except ValidationError as e:
            raise EnvelopeError(f"Malformed list response for rule {index}: {e}") from e

        if not result.result:
            raise EmptyResultError(f"No records returned for search rule {index}")
        return result

    def patch_ip_record_address(
        self, zone: Zone, record: Record, addresses: AddressPair
    ) -> PatchResponse:
        """Set the content of one A/AAAA record to the matching resolved address."""
        content = desired_content(record, addresses)
        if not record.id:
            raise MissingRecordIdError(f"Record {record.name} does not have an id")

        response = self._session.patch(
            f"{self._records_url(zone)}/{record.id}",
            json={"content": content},
            headers=self._headers(zone),
            timeout=self._timeout,
        )
        text = response.text

        if not is_success_status(response.status_code):
            raise ProviderError(response.status_code, f"patching record {record.name}", text)

        try:
            return PatchResponse.model_validate(_decode_envelope(text, f"record {record.name}"))
        except ValidationError as e:
            raise EnvelopeError(f"Malformed patch response for record {record.name}: {e}") from e


def format_messages(messages: List[Any]) -> str:
    return "; ".join(str(m) for m in messages) or "no messages"
