"""
Public resolver catalog.

A read-only table of well-known public DNS services and the transports
each one supports. Propagation checks take a catalog explicitly, so
callers can substitute their own list.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import fnmatch
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from netaddr import AddrFormatError, IPAddress

from dnsprobe.config import ProbeConfig, get_config


class CatalogError(ValueError):
    """Invalid resolver definition."""


@dataclass(frozen=True)
class Resolver:
    """A public DNS service."""
    name: str
    ipv4: str
    doh_json_url: str | None = None
    doh_wire_url: str | None = None
    privacy_url: str | None = None  # Metadata only

    def __post_init__(self):
        if not self.name:
            raise CatalogError("Resolver name is required")
        try:
            version = IPAddress(self.ipv4).version
        except (AddrFormatError, ValueError, TypeError):
            raise CatalogError(f"{self.name}: invalid IPv4 address {self.ipv4!r}") from None
        if version != 4:
            raise CatalogError(f"{self.name}: {self.ipv4} is not an IPv4 address")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# Order here is the reporting order of propagation checks
DEFAULT_RESOLVERS: tuple[Resolver, ...] = (
    Resolver(
        name="Google",
        ipv4="8.8.8.8",
        doh_json_url="https://dns.google/resolve",
        doh_wire_url="https://dns.google/dns-query",
        privacy_url="https://developers.google.com/speed/public-dns/privacy",
    ),
    Resolver(
        name="Cloudflare",
        ipv4="1.1.1.1",
        doh_json_url="https://cloudflare-dns.com/dns-query",
        doh_wire_url="https://cloudflare-dns.com/dns-query",
        privacy_url="https://developers.cloudflare.com/1.1.1.1/privacy/public-dns-resolver/",
    ),
    Resolver(
        name="Quad9",
        ipv4="9.9.9.9",
        doh_wire_url="https://dns.quad9.net/dns-query",
        privacy_url="https://www.quad9.net/privacy/policy/",
    ),
    Resolver(
        name="OpenDNS",
        ipv4="208.67.222.222",
        doh_wire_url="https://doh.opendns.com/dns-query",
        privacy_url="https://www.cisco.com/c/en/us/about/legal/privacy-full.html",
    ),
    Resolver(
        name="AdGuard",
        ipv4="94.140.14.14",
        doh_json_url="https://dns.adguard-dns.com/resolve",
        doh_wire_url="https://dns.adguard-dns.com/dns-query",
        privacy_url="https://adguard-dns.io/en/privacy.html",
    ),
    Resolver(
        name="CleanBrowsing",
        ipv4="185.228.168.9",
        doh_wire_url="https://doh.cleanbrowsing.org/doh/security-filter/",
        privacy_url="https://cleanbrowsing.org/privacy",
    ),
    Resolver(
        name="Control D",
        ipv4="76.76.2.0",
        doh_wire_url="https://freedns.controld.com/p0",
        privacy_url="https://controld.com/privacy",
    ),
    Resolver(
        name="Level3",
        ipv4="4.2.2.1",
        privacy_url="https://www.lumen.com/en-us/about/legal/privacy-notice.html",
    ),
    Resolver(
        name="Comodo Secure",
        ipv4="8.26.56.26",
        privacy_url="https://www.comodo.com/repository/privacy-policy.php",
    ),
    Resolver(
        name="Yandex",
        ipv4="77.88.8.8",
        privacy_url="https://yandex.com/legal/confidential/",
    ),
)


class ResolverCatalog:
    """Read-only, ordered collection of resolvers."""

    def __init__(self, resolvers: Iterable[Resolver] | None = None):
        self._resolvers: tuple[Resolver, ...] = (
            DEFAULT_RESOLVERS if resolvers is None else tuple(resolvers)
        )

    def __iter__(self) -> Iterator[Resolver]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)

    def __repr__(self) -> str:
        names = ", ".join(r.name for r in self._resolvers)
        return f"ResolverCatalog([{names}])"

    @property
    def resolvers(self) -> tuple[Resolver, ...]:
        return self._resolvers

    def get(self, name: str) -> Resolver | None:
        """Find a resolver by name (case-insensitive)."""
        wanted = name.strip().lower()
        for resolver in self._resolvers:
            if resolver.name.lower() == wanted:
                return resolver
        return None

    def filter(self, pattern: str | None) -> "ResolverCatalog":
        """
        Select resolvers whose name matches a shell-style pattern.

        Matching is case-insensitive. A pattern without wildcards
        matches as a substring, so "cloud" selects "Cloudflare".
        """
        if not pattern:
            return self

        pattern = pattern.lower()
        if not any(ch in pattern for ch in "*?["):
            pattern = f"*{pattern}*"

        return ResolverCatalog(
            r for r in self._resolvers if fnmatch.fnmatchcase(r.name.lower(), pattern)
        )

    def ipv4_addresses(self) -> list[str]:
        """Resolver addresses, in catalog order."""
        return [r.ipv4 for r in self._resolvers]

    @classmethod
    def from_file(cls, path: str | Path) -> "ResolverCatalog":
        """
        Load a catalog from a JSON file.

        The file holds a list of objects with ``name`` and ``ipv4`` and
        optionally ``doh_json_url``, ``doh_wire_url`` and ``privacy_url``.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except OSError as e:
            raise CatalogError(f"Cannot read resolver file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CatalogError(f"Resolver file {path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise CatalogError(f"Resolver file {path} must contain a list")

        resolvers = []
        for index, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise CatalogError(f"Resolver entry {index} is not an object")
            try:
                resolvers.append(Resolver(
                    name=entry["name"],
                    ipv4=entry["ipv4"],
                    doh_json_url=entry.get("doh_json_url") or None,
                    doh_wire_url=entry.get("doh_wire_url") or None,
                    privacy_url=entry.get("privacy_url") or None,
                ))
            except KeyError as e:
                raise CatalogError(f"Resolver entry {index} is missing {e.args[0]!r}") from None

        return cls(resolvers)


def load_catalog(config: ProbeConfig | None = None) -> ResolverCatalog:
    """Catalog from the configured resolvers file, or the built-in list."""
    config = config or get_config()
    if config.resolvers_file:
        return ResolverCatalog.from_file(config.resolvers_file)
    return ResolverCatalog()
