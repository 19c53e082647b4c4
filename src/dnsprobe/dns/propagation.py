"""
DNS propagation checking.

Queries every resolver in a catalog for the same record and reports,
per resolver, whether the record is visible (or matches an expected
value). One resolver failing never stops the others from being checked.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from dnsprobe.config import get_config
from dnsprobe.dns.catalog import Resolver, ResolverCatalog, load_catalog
from dnsprobe.dns.codec import RecordType, encode_name
from dnsprobe.dns.transport import (
    QueryStatus,
    Transport,
    TransportResult,
    query_doh_json,
    query_doh_wire,
    query_udp,
)
from dnsprobe.logging_config import track_error


logger = logging.getLogger(__name__)


def normalize_value(value: str) -> str:
    """Comparison form of a record value: trimmed, lower-case, no trailing dot."""
    return value.strip().rstrip(".").lower()


@dataclass
class PropagationResult:
    """Outcome of a propagation check against one resolver."""
    server: str
    ipv4_primary: str
    status: QueryStatus = QueryStatus.ERROR
    records: list[str] = field(default_factory=list)
    propagated: bool = False
    transport: Transport | None = None
    error: str | None = None
    response_time_ms: float = 0.0

    @property
    def records_text(self) -> str:
        return ", ".join(self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Server": self.server,
            "IPv4Primary": self.ipv4_primary,
            "Status": self.status.value,
            "Records": self.records_text,
            "Propagated": self.propagated,
        }


@dataclass
class PropagationSummary:
    """Aggregate view of a propagation check."""
    total: int = 0
    resolved: int = 0
    no_records: int = 0
    errors: int = 0
    propagated: int = 0
    answers: list[tuple[str, ...]] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        """At most one distinct answer among resolvers that resolved."""
        return len(self.answers) <= 1

    @property
    def fully_propagated(self) -> bool:
        return self.total > 0 and self.propagated == self.total


def summarize(results: list[PropagationResult]) -> PropagationSummary:
    """Count statuses and collect the distinct answer sets."""
    summary = PropagationSummary(total=len(results))
    seen: set[tuple[str, ...]] = set()

    for result in results:
        if result.status == QueryStatus.RESOLVED:
            summary.resolved += 1
            answer = tuple(sorted({normalize_value(v) for v in result.records}))
            if answer not in seen:
                seen.add(answer)
                summary.answers.append(answer)
        elif result.status == QueryStatus.NO_RECORDS:
            summary.no_records += 1
        else:
            summary.errors += 1

        if result.propagated:
            summary.propagated += 1

    return summary


class PropagationChecker:
    """
    Check a record across a resolver catalog.

    Per resolver:
      1. DoH JSON when the resolver has a JSON endpoint
      2. otherwise UDP
      3. if UDP did not resolve and a DoH wire endpoint exists, one retry
         over DoH wire

    Usage:
        checker = PropagationChecker(timeout=2.0)
        results = checker.check("example.com", "A", expected="93.184.216.34")
    """

    def __init__(
        self,
        catalog: ResolverCatalog | None = None,
        timeout: float | None = None,
        max_workers: int | None = None,
    ):
        config = get_config()
        self.catalog = catalog if catalog is not None else load_catalog(config)
        self.timeout = timeout if timeout is not None else config.timeout
        self.max_workers = max(1, max_workers if max_workers is not None else config.max_workers)

    def _query(self, resolver: Resolver, name: str, record_type: RecordType) -> TransportResult:
        """Apply the transport policy for one resolver."""
        if resolver.doh_json_url:
            return query_doh_json(resolver.doh_json_url, name, record_type, timeout=self.timeout)

        result = query_udp(resolver.ipv4, name, record_type, timeout_ms=int(self.timeout * 1000))
        if result.status != QueryStatus.RESOLVED and resolver.doh_wire_url:
            logger.debug(
                "%s: UDP gave %s (%s), retrying over DoH wire",
                resolver.name, result.status.value, result.error or "no error",
            )
            result = query_doh_wire(resolver.doh_wire_url, name, record_type, timeout=self.timeout)
        return result

    def check_resolver(
        self,
        resolver: Resolver,
        name: str,
        record_type: "RecordType | str | int" = "A",
        expected: str | None = None,
    ) -> PropagationResult:
        """Check one resolver. Never raises for query failures."""
        qtype = RecordType.parse(record_type)
        result = PropagationResult(server=resolver.name, ipv4_primary=resolver.ipv4)

        start = time.monotonic()
        try:
            answer = self._query(resolver, name, qtype)
        except Exception as e:
            track_error(
                "resolver_error",
                f"{resolver.name}: {e}",
                exception=e,
                level=logging.WARNING,
            )
            result.error = str(e) or type(e).__name__
            result.response_time_ms = (time.monotonic() - start) * 1000
            return result

        result.status = answer.status
        result.records = list(answer.records)
        result.transport = answer.transport
        result.error = answer.error
        result.response_time_ms = answer.response_time_ms or (time.monotonic() - start) * 1000

        if expected is not None:
            wanted = normalize_value(expected)
            result.propagated = any(normalize_value(v) == wanted for v in result.records)
        else:
            result.propagated = result.status == QueryStatus.RESOLVED and bool(result.records)

        logger.debug(
            "%s (%s): %s via %s -> %s",
            resolver.name, resolver.ipv4, result.status.value,
            result.transport.value if result.transport else "-", result.records_text or "(none)",
        )
        return result

    def check(
        self,
        name: str,
        record_type: "RecordType | str | int" = "A",
        expected: str | None = None,
    ) -> list[PropagationResult]:
        """
        Check a record on every resolver in the catalog.

        Args:
            name: Domain name
            record_type: Record type mnemonic or code
            expected: Value every resolver should return (optional)

        Returns:
            One PropagationResult per resolver, in catalog order
        """
        qtype = RecordType.parse(record_type)
        encode_name(name)  # invalid names raise CodecError before any query
        resolvers = list(self.catalog)
        logger.info(
            "Checking %s %s on %d resolvers", name, qtype.name, len(resolvers)
        )

        if self.max_workers == 1 or len(resolvers) <= 1:
            return [self.check_resolver(r, name, qtype, expected) for r in resolvers]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(resolvers))) as pool:
            return list(pool.map(lambda r: self.check_resolver(r, name, qtype, expected), resolvers))


def check_propagation(
    name: str,
    record_type: "RecordType | str | int" = "A",
    timeout: float | None = None,
    expected: str | None = None,
    catalog: ResolverCatalog | None = None,
    max_workers: int | None = None,
) -> list[PropagationResult]:
    """Check DNS propagation across a resolver catalog."""
    checker = PropagationChecker(catalog=catalog, timeout=timeout, max_workers=max_workers)
    return checker.check(name, record_type, expected)
