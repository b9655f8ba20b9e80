"""Reconciliation engine.

One pass resolves the public addresses, then for every zone:

1. runs all search rules concurrently and merges their records by id,
2. decides per record whether it needs a patch,
3. patches the changed A/AAAA records concurrently and counts the successes.

Failures stay local: a failing rule drops only its own records, a failing
patch only its own record, a failing zone only that zone.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import requests

from .addresses import AddressPair, address_tuple_to_string, get_ip_addresses
from .api import CloudflareAPI, format_messages
from .config import Config, SearchRule, Zone
from .errors import (
    DynDNSError,
    EmptyResultError,
    EnvelopeError,
    PatchPreconditionError,
    ProviderError,
    ZoneListingError,
)
from .records import Record, RecordType

logger = logging.getLogger(__name__)

# =============================================================================
# Outcomes
# =============================================================================


class RecordAction(Enum):
    """What the reconciler decided to do with a listed record."""

    SKIP_NOT_IP = "skipped-wrong-variant"
    SKIP_NO_ADDRESS = "skipped-no-address"
    SKIP_UNCHANGED = "skipped-unchanged"
    PATCH = "patch"


class PatchOutcome(Enum):
    PATCHED = "patched"
    FAILED_PROVIDER = "failed-provider"
    FAILED_TRANSPORT = "failed-transport"
    FAILED_VALIDATION = "failed-validation"


@dataclass
class ZoneReport:
    """Per-record results of reconciling one zone, keyed by record id."""

    zone_id: str
    skipped: Dict[str, RecordAction] = field(default_factory=dict)
    patches: Dict[str, PatchOutcome] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.patches.values() if outcome is PatchOutcome.PATCHED)

    @property
    def failure_count(self) -> int:
        return len(self.patches) - self.success_count


# =============================================================================
# Record Lister
# =============================================================================


def list_records_for_rule(
    api: CloudflareAPI,
    zone: Zone,
    index: int,
    rule: SearchRule,
    records: Dict[str, Record],
    lock: threading.Lock,
) -> int:
    """Query one rule and merge its records into ``records``; first-seen id wins.

    Returns the number of ids this rule added.
    """
    response = api.list_records_for_rule(zone, index, rule)

    info = response.result_info
    if info is not None and info.total_count > len(response.result):
        logger.warning(
            f'("{zone.identifier}"): (Rule {index}): Rule matches {info.total_count} records '
            f"but only page {info.page} with {len(response.result)} was read"
        )

    new_records = 0
    with lock:
        for record in response.result:
            if not record.id:
                logger.warning(
                    f'("{zone.identifier}"): (Rule {index}): Ignoring record {record.name} without id'
                )
                continue
            if record.id not in records:
                records[record.id] = record
                new_records += 1
    return new_records


def list_records(api: CloudflareAPI, zone: Zone, executor: Executor) -> Dict[str, Record]:
    """Run every search rule of ``zone`` concurrently and merge the results by record id.

    Rule failures are logged and leave the other rules' records intact. An
    empty result is returned as-is; the caller decides what it means.
    """
    records: Dict[str, Record] = {}
    lock = threading.Lock()

    futures = {
        executor.submit(list_records_for_rule, api, zone, i, rule, records, lock): i
        for i, rule in enumerate(zone.search)
    }
    wait(futures)

    for future, i in sorted(futures.items(), key=lambda item: item[1]):
        try:
            added = future.result()
            logger.debug(f'("{zone.identifier}"): (Rule {i}): Got {added} new records')
        except EmptyResultError as e:
            logger.error(f'("{zone.identifier}"): (Rule {i}): {e}')
        except (ProviderError, EnvelopeError) as e:
            logger.error(f'("{zone.identifier}"): (Rule {i}): Error while listing records: {e}')
        except requests.exceptions.RequestException as e:
            logger.error(f'("{zone.identifier}"): (Rule {i}): Transport error while listing records: {e}')

    return records


# =============================================================================
# Reconciler
# =============================================================================


def classify_record(record: Record, addresses: AddressPair) -> Tuple[RecordAction, Optional[str]]:
    """Decide what to do with ``record``; returns the action and the target content."""
    ipv4, ipv6 = addresses
    if record.type == RecordType.A.value and record.is_ip_record:
        target = ipv4
    elif record.type == RecordType.AAAA.value and record.is_ip_record:
        target = ipv6
    else:
        return RecordAction.SKIP_NOT_IP, None

    if target is None:
        return RecordAction.SKIP_NO_ADDRESS, None

    desired = str(target)
    if record.content == desired:
        return RecordAction.SKIP_UNCHANGED, desired
    return RecordAction.PATCH, desired


def patch_record(
    api: CloudflareAPI, zone: Zone, record: Record, addresses: AddressPair
) -> PatchOutcome:
    """Patch one record and turn every failure into an outcome value."""
    prefix = f'("{zone.identifier}"): ({record.name})'
    try:
        response = api.patch_ip_record_address(zone, record, addresses)
    except PatchPreconditionError as e:
        logger.error(f"{prefix}: Cannot patch record: {e}")
        return PatchOutcome.FAILED_VALIDATION
    except (ProviderError, EnvelopeError) as e:
        logger.error(f"{prefix}: {e}")
        return PatchOutcome.FAILED_PROVIDER
    except requests.exceptions.RequestException as e:
        logger.error(f"{prefix}: Transport error while patching record: {e}")
        return PatchOutcome.FAILED_TRANSPORT

    if not response.success:
        logger.error(
            f"{prefix}: Patch unsuccessful: {format_messages(response.errors + response.messages)}"
        )
        return PatchOutcome.FAILED_PROVIDER

    logger.info(f"{prefix}: Successfully patched record")
    return PatchOutcome.PATCHED


def patch_zone(
    api: CloudflareAPI, zone: Zone, addresses: AddressPair, executor: Executor
) -> ZoneReport:
    """Reconcile one zone against ``addresses``.

    Raises ZoneListingError when the zone has search rules but no record
    could be listed at all.
    """
    zone_id = zone.identifier
    report = ZoneReport(zone_id=zone_id)

    if not zone.search:
        logger.warning(f'("{zone_id}"): Zone has no search rules, nothing to do')
        return report

    logger.info(f'("{zone_id}"): Listing records')
    records = list_records(api, zone, executor)
    if not records:
        raise ZoneListingError(f'Could not list any records for zone "{zone_id}"')

    logger.info(f'("{zone_id}"): Received {len(records)} records')
    logger.debug(f'("{zone_id}"): Records: {records}')

    futures = {}
    for record_id, record in records.items():
        action, _ = classify_record(record, addresses)
        prefix = f'("{zone_id}"): ({record.name})'

        if action is RecordAction.SKIP_NOT_IP:
            logger.info(f"{prefix}: Record is not an IP record ({record.type}), skipping")
        elif action is RecordAction.SKIP_NO_ADDRESS:
            family = "IPv4" if record.type == RecordType.A.value else "IPv6"
            logger.warning(
                f"{prefix}: Cannot update record as no {family} address is provided, skipping"
            )
        elif action is RecordAction.SKIP_UNCHANGED:
            logger.info(f"{prefix}: Content has not changed, skipping")
        else:
            futures[executor.submit(patch_record, api, zone, record, addresses)] = record_id
            continue
        report.skipped[record_id] = action

    if futures:
        logger.info(f'("{zone_id}"): Patching {len(futures)} records')
        wait(futures)
        for future, record_id in futures.items():
            report.patches[record_id] = future.result()

    return report


# =============================================================================
# Core Syncer
# =============================================================================


class DynDNSSyncer:
    """Runs reconciliation passes for every configured zone."""

    def __init__(self, *, config: Config, session: requests.Session, executor: Executor):
        self.config = config
        self.session = session
        self.executor = executor
        self.api = CloudflareAPI(session, config.api_base_url, config.timeout_seconds)

    def resolve_addresses(self) -> AddressPair:
        logger.info("Getting ip addresses")
        addresses = get_ip_addresses(
            self.session,
            self.config.ipv4_service,
            self.config.ipv6_service,
            timeout=self.config.timeout_seconds,
        )
        logger.info(f"Got {address_tuple_to_string(addresses)}")
        return addresses

    def sync_once(self) -> List[ZoneReport]:
        """Run one reconciliation pass.

        Raises AddressResolutionError if no address could be resolved; in that
        case no zone is touched. Every other failure is confined to its zone.
        """
        addresses = self.resolve_addresses()

        reports: List[ZoneReport] = []
        for zone in self.config.zones:
            zone_id = zone.identifier
            try:
                report = patch_zone(self.api, zone, addresses, self.executor)
            except DynDNSError as e:
                logger.error(f'("{zone_id}"): Fatal error while patching records: {e}')
                continue
            except Exception as e:
                logger.error(
                    f'("{zone_id}"): Unexpected error while patching records: {e}', exc_info=True
                )
                continue

            failed = f", {report.failure_count} failed" if report.failure_count else ""
            logger.info(f'("{zone_id}"): Patched {report.success_count} records{failed}')
            reports.append(report)
        return reports
