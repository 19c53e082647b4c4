"""
DNS query transports.

Three interchangeable ways to ask one resolver one question:

- UDP: a single datagram to port 53
- DoH JSON: HTTP GET with ``Accept: application/dns-json``
- DoH wire: RFC 8484 POST of the encoded query

All of them return a TransportResult and never raise for network
failures.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import logging
import re
import socket
import time
from dataclasses import dataclass, field
from enum import Enum

import httpx

from dnsprobe.dns.codec import (
    DnsMessage,
    Rcode,
    RecordType,
    decode_message,
    encode_query,
    new_query_id,
)
from dnsprobe.logging_config import track_error


logger = logging.getLogger(__name__)

DNS_PORT = 53
UDP_MAX_RESPONSE = 4096

DOH_JSON_CONTENT_TYPE = "application/dns-json"
DOH_WIRE_CONTENT_TYPE = "application/dns-message"

# Connection failures worth retrying through the system proxy
PROXY_ERROR_PATTERNS = (
    "proxy",
    "connection refused",
    "actively refused",
    "407",
    "tunnel",
)

_TXT_SEGMENT = re.compile(r'"((?:[^"\\]|\\.)*)"')
_TXT_ESCAPE = re.compile(r"\\(.)")


class QueryStatus(str, Enum):
    """Outcome of a query against one resolver."""
    RESOLVED = "Resolved"
    NO_RECORDS = "NoRecords"
    ERROR = "Error"


class Transport(str, Enum):
    """Transport used for a query."""
    UDP = "udp"
    DOH_JSON = "doh-json"
    DOH_WIRE = "doh-wire"
    SYSTEM = "system"


@dataclass
class TransportResult:
    """Status and record values from one transport call."""
    status: QueryStatus
    transport: Transport
    records: list[str] = field(default_factory=list)
    rcode: int | None = None
    error: str | None = None
    response_time_ms: float = 0.0

    @property
    def resolved(self) -> bool:
        return self.status == QueryStatus.RESOLVED


def _rcode_name(rcode: int) -> str:
    try:
        return Rcode(rcode).name
    except ValueError:
        return f"RCODE{rcode}"


def _result_for_rcode(
    rcode: int,
    records: list[str],
    transport: Transport,
    name: str,
    server: str,
) -> TransportResult:
    """Map a response code and answer values to a status."""
    if rcode == Rcode.SERVFAIL:
        return TransportResult(QueryStatus.ERROR, transport, rcode=rcode, error="SERVFAIL")

    if rcode != Rcode.NOERROR:
        if rcode == Rcode.NXDOMAIN:
            logger.warning("%s reports NXDOMAIN for %s", server, name)
        return TransportResult(
            QueryStatus.NO_RECORDS, transport, rcode=rcode, error=_rcode_name(rcode)
        )

    status = QueryStatus.RESOLVED if records else QueryStatus.NO_RECORDS
    return TransportResult(status, transport, records=records, rcode=rcode)


def result_from_message(
    message: DnsMessage,
    query_id: int,
    transport: Transport,
    name: str,
    server: str,
) -> TransportResult:
    """Turn a decoded wire response into a TransportResult."""
    if message.malformed:
        return TransportResult(QueryStatus.NO_RECORDS, transport, error="Malformed response")

    if message.id != query_id:
        track_error(
            "id_mismatch",
            f"{server}: sent id {query_id}, got {message.id}",
            level=logging.WARNING,
        )
        return TransportResult(
            QueryStatus.ERROR, transport, rcode=message.rcode, error="Transaction id mismatch"
        )

    return _result_for_rcode(message.rcode, message.values, transport, name, server)


def query_udp(
    resolver_ip: str,
    name: str,
    record_type: "RecordType | str | int" = "A",
    timeout_ms: int = 2000,
    port: int = DNS_PORT,
) -> TransportResult:
    """
    Query a resolver over UDP.

    Args:
        resolver_ip: Resolver address
        name: Domain name
        record_type: Record type mnemonic or code
        timeout_ms: Receive timeout in milliseconds
        port: Resolver port

    Returns:
        TransportResult for the single reply (or the failure)
    """
    query_id = new_query_id()
    query = encode_query(name, record_type, query_id)
    family = socket.AF_INET6 if ":" in resolver_ip else socket.AF_INET

    start = time.monotonic()
    try:
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.settimeout(timeout_ms / 1000.0)
            sock.sendto(query, (resolver_ip, port))
            data, _peer = sock.recvfrom(UDP_MAX_RESPONSE)
    except socket.timeout:
        track_error(
            "udp_timeout",
            f"{resolver_ip}: no reply within {timeout_ms}ms",
            level=logging.WARNING,
        )
        return TransportResult(QueryStatus.ERROR, Transport.UDP, error="Timeout")
    except OSError as e:
        track_error("udp_error", f"{resolver_ip}: {e}", level=logging.WARNING)
        return TransportResult(QueryStatus.ERROR, Transport.UDP, error=str(e))

    elapsed = (time.monotonic() - start) * 1000
    result = result_from_message(decode_message(data), query_id, Transport.UDP, name, resolver_ip)
    result.response_time_ms = elapsed
    return result


def _is_proxy_error(exc: httpx.HTTPError) -> bool:
    """Whether a failed direct request looks like it needs the system proxy."""
    if isinstance(exc, httpx.ProxyError):
        return True
    if not isinstance(exc, httpx.ConnectError):
        return False
    text = str(exc).lower()
    return any(pattern in text for pattern in PROXY_ERROR_PATTERNS)


def _unquote_txt(data: str) -> str:
    """
    Strip quoting from TXT data, joining multiple quoted strings.

    Only data that is itself quoted is split; unquoted data (as some
    resolvers return it) is passed through even if it contains quotes.
    """
    text = data.strip()
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        return data
    return "".join(_TXT_ESCAPE.sub(r"\1", s) for s in _TXT_SEGMENT.findall(text))


def _soa_primary(data: str) -> str:
    """Primary name server from SOA presentation data, as the wire codec reports it."""
    fields = data.split()
    return fields[0].rstrip(".") if fields else data


def _fetch_json(url: str, params: dict[str, str], timeout: float, use_proxy: bool) -> object:
    # trust_env makes httpx pick up HTTP(S)_PROXY and credentials in the proxy URL
    with httpx.Client(timeout=httpx.Timeout(timeout), trust_env=use_proxy) as client:
        response = client.get(url, params=params, headers={"Accept": DOH_JSON_CONTENT_TYPE})
        response.raise_for_status()
        return response.json()


def query_doh_json(
    url: str,
    name: str,
    record_type: "RecordType | str | int" = "A",
    timeout: float = 5.0,
) -> TransportResult:
    """
    Query a DNS-over-HTTPS JSON endpoint.

    A direct request is tried first. If it fails at the connection level
    in a way that suggests a proxy is required, the request is repeated
    once through the system proxy.

    Args:
        url: Endpoint URL (e.g. https://dns.google/resolve)
        name: Domain name
        record_type: Record type mnemonic or code
        timeout: Request timeout in seconds

    Returns:
        TransportResult built from the JSON Status and Answer fields
    """
    qtype = RecordType.parse(record_type)
    params = {"name": name, "type": str(int(qtype))}

    start = time.monotonic()
    try:
        try:
            data = _fetch_json(url, params, timeout, use_proxy=False)
        except httpx.TransportError as e:
            if not _is_proxy_error(e):
                raise
            logger.info("Direct request to %s failed (%s), retrying through system proxy", url, e)
            data = _fetch_json(url, params, timeout, use_proxy=True)
    except httpx.HTTPStatusError as e:
        track_error("doh_http_status", f"{url}: HTTP {e.response.status_code}", level=logging.WARNING)
        return TransportResult(
            QueryStatus.ERROR, Transport.DOH_JSON, error=f"HTTP {e.response.status_code}"
        )
    except httpx.HTTPError as e:
        track_error("doh_error", f"{url}: {e}", level=logging.WARNING)
        return TransportResult(QueryStatus.ERROR, Transport.DOH_JSON, error=str(e) or type(e).__name__)
    except ValueError:
        track_error("doh_bad_json", f"{url}: response is not JSON", level=logging.WARNING)
        return TransportResult(QueryStatus.ERROR, Transport.DOH_JSON, error="Invalid JSON response")

    elapsed = (time.monotonic() - start) * 1000

    if not isinstance(data, dict):
        return TransportResult(QueryStatus.ERROR, Transport.DOH_JSON, error="Unexpected JSON response")

    try:
        rcode = int(data.get("Status", 0))
    except (TypeError, ValueError):
        return TransportResult(QueryStatus.ERROR, Transport.DOH_JSON, error="Invalid Status field")

    records = []
    for answer in data.get("Answer") or []:
        if not isinstance(answer, dict) or "data" not in answer:
            continue
        value = str(answer["data"])
        answer_type = answer.get("type", int(qtype))
        if answer_type == RecordType.TXT:
            value = _unquote_txt(value)
        elif answer_type == RecordType.SOA:
            value = _soa_primary(value)
        records.append(value)

    result = _result_for_rcode(rcode, records, Transport.DOH_JSON, name, url)
    result.response_time_ms = elapsed
    return result


def query_doh_wire(
    url: str,
    name: str,
    record_type: "RecordType | str | int" = "A",
    timeout: float = 5.0,
) -> TransportResult:
    """
    Query a DNS-over-HTTPS endpoint with an RFC 8484 POST.

    The response body is decoded with the same codec as UDP replies.
    """
    query_id = new_query_id()
    query = encode_query(name, record_type, query_id)
    headers = {
        "Content-Type": DOH_WIRE_CONTENT_TYPE,
        "Accept": DOH_WIRE_CONTENT_TYPE,
    }

    start = time.monotonic()
    try:
        with httpx.Client(timeout=httpx.Timeout(timeout), trust_env=False) as client:
            response = client.post(url, content=query, headers=headers)
            response.raise_for_status()
            body = response.content
    except httpx.HTTPStatusError as e:
        track_error("doh_http_status", f"{url}: HTTP {e.response.status_code}", level=logging.WARNING)
        return TransportResult(
            QueryStatus.ERROR, Transport.DOH_WIRE, error=f"HTTP {e.response.status_code}"
        )
    except httpx.HTTPError as e:
        track_error("doh_error", f"{url}: {e}", level=logging.WARNING)
        return TransportResult(QueryStatus.ERROR, Transport.DOH_WIRE, error=str(e) or type(e).__name__)

    elapsed = (time.monotonic() - start) * 1000
    result = result_from_message(decode_message(body), query_id, Transport.DOH_WIRE, name, url)
    result.response_time_ms = elapsed
    return result
