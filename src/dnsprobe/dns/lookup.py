"""
Single-resolver lookups.

Asks one configured DNS-over-HTTPS endpoint, or, when none is configured,
the operating system resolver (A and AAAA only).
"""

import logging
import socket
from dataclasses import dataclass, field

from netaddr import valid_ipv4, valid_ipv6

from dnsprobe.config import get_config
from dnsprobe.dns.codec import RecordType
from dnsprobe.dns.transport import QueryStatus, Transport, query_doh_json


logger = logging.getLogger(__name__)

_SYSTEM_FAMILIES = {
    RecordType.A: socket.AF_INET,
    RecordType.AAAA: socket.AF_INET6,
}

# getaddrinfo errors meaning "no such name / no address", not a failure
_NOT_FOUND_ERRORS = {
    getattr(socket, attr)
    for attr in ("EAI_NONAME", "EAI_NODATA", "EAI_ADDRFAMILY")
    if hasattr(socket, attr)
}


@dataclass
class LookupResult:
    """Result of a single-resolver lookup."""
    name: str
    record_type: RecordType
    status: QueryStatus
    source: Transport
    records: list[str] = field(default_factory=list)
    error: str | None = None


def _resolve_system(name: str, qtype: RecordType) -> LookupResult:
    """Resolve A/AAAA through getaddrinfo."""
    family = _SYSTEM_FAMILIES[qtype]
    try:
        infos = socket.getaddrinfo(name, None, family, socket.SOCK_STREAM)
    except socket.gaierror as e:
        status = QueryStatus.NO_RECORDS if e.errno in _NOT_FOUND_ERRORS else QueryStatus.ERROR
        logger.debug("System lookup of %s %s failed: %s", name, qtype.name, e)
        return LookupResult(name, qtype, status, Transport.SYSTEM, error=str(e))
    except (OSError, UnicodeError) as e:
        return LookupResult(name, qtype, QueryStatus.ERROR, Transport.SYSTEM, error=str(e))

    addresses: list[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)

    status = QueryStatus.RESOLVED if addresses else QueryStatus.NO_RECORDS
    return LookupResult(name, qtype, status, Transport.SYSTEM, records=addresses)


def resolve(
    name: str,
    record_type: "RecordType | str | int" = "A",
    doh_url: str | None = None,
    timeout: float | None = None,
) -> LookupResult:
    """
    Look up a record on a single resolver.

    Args:
        name: Domain name
        record_type: Record type mnemonic or code
        doh_url: DoH JSON endpoint (defaults to DNSPROBE_DOH_URL)
        timeout: Request timeout in seconds (defaults to DNSPROBE_TIMEOUT)

    Returns:
        LookupResult with the record values
    """
    qtype = RecordType.parse(record_type)
    config = get_config()
    doh_url = doh_url or config.doh_url
    timeout = timeout if timeout is not None else config.timeout

    if doh_url:
        answer = query_doh_json(doh_url, name, qtype, timeout=timeout)
        return LookupResult(
            name=name,
            record_type=qtype,
            status=answer.status,
            source=Transport.DOH_JSON,
            records=answer.records,
            error=answer.error,
        )

    if qtype not in _SYSTEM_FAMILIES:
        return LookupResult(
            name, qtype, QueryStatus.ERROR, Transport.SYSTEM,
            error=f"{qtype.name} lookups require a DoH endpoint",
        )

    return _resolve_system(name, qtype)


def resolve_addresses(
    name: str,
    doh_url: str | None = None,
    timeout: float | None = None,
) -> list[str]:
    """IPv4 then IPv6 addresses for a name, as plain strings."""
    addresses: list[str] = []
    for qtype in (RecordType.A, RecordType.AAAA):
        result = resolve(name, qtype, doh_url=doh_url, timeout=timeout)
        for value in result.records:
            # DoH answers can include CNAME targets alongside addresses
            if (valid_ipv4(value) or valid_ipv6(value)) and value not in addresses:
                addresses.append(value)
    return addresses
