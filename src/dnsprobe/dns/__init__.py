"""
DNS Utilities Module

Provides a wire-format DNS codec, UDP and DNS-over-HTTPS transports,
a public resolver catalog and propagation checking.
"""

from dnsprobe.dns.codec import (
    CodecError,
    DnsMessage,
    RecordType,
    ResourceRecord,
    decode_message,
    encode_query,
)
from dnsprobe.dns.transport import (
    QueryStatus,
    TransportResult,
    query_udp,
    query_doh_json,
    query_doh_wire,
)
from dnsprobe.dns.catalog import (
    DEFAULT_RESOLVERS,
    Resolver,
    ResolverCatalog,
)
from dnsprobe.dns.propagation import (
    PropagationChecker,
    PropagationResult,
    check_propagation,
    summarize,
)
from dnsprobe.dns.lookup import (
    LookupResult,
    resolve,
    resolve_addresses,
)

__all__ = [
    "CodecError",
    "DnsMessage",
    "RecordType",
    "ResourceRecord",
    "decode_message",
    "encode_query",
    "QueryStatus",
    "TransportResult",
    "query_udp",
    "query_doh_json",
    "query_doh_wire",
    "DEFAULT_RESOLVERS",
    "Resolver",
    "ResolverCatalog",
    "PropagationChecker",
    "PropagationResult",
    "check_propagation",
    "summarize",
    "LookupResult",
    "resolve",
    "resolve_addresses",
]
