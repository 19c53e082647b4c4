"""
DNS CLI commands.
"""

import json

import click
from rich.console import Console
from rich.table import Table

from dnsprobe.config import get_config
from dnsprobe.dns.catalog import CatalogError, load_catalog
from dnsprobe.dns.codec import CodecError, RecordType
from dnsprobe.dns.lookup import resolve
from dnsprobe.dns.propagation import check_propagation, summarize
from dnsprobe.dns.transport import QueryStatus, query_udp


def _record_type(ctx, param, value: str) -> RecordType:
    try:
        return RecordType.parse(value)
    except CodecError as e:
        raise click.BadParameter(str(e)) from None


STATUS_STYLES = {
    QueryStatus.RESOLVED: "[green]Resolved[/green]",
    QueryStatus.NO_RECORDS: "[yellow]NoRecords[/yellow]",
    QueryStatus.ERROR: "[red]Error[/red]",
}


@click.group()
def dns():
    """DNS lookup and propagation commands."""
    pass


@dns.command()
@click.argument("name")
@click.option("-t", "--type", "record_type", default="A", callback=_record_type,
              help="Record type (A, AAAA, MX, NS, TXT, etc.)")
@click.option("-s", "--server", help="Resolver IP to query over UDP")
@click.option("--doh", "doh_url", help="DoH JSON endpoint to query")
@click.option("--timeout", type=float, help="Timeout in seconds")
def query(name: str, record_type: RecordType, server: str | None, doh_url: str | None,
          timeout: float | None):
    """Look up a record on a single resolver.

    Without --server or --doh the operating system resolver is used
    (A and AAAA only) unless DNSPROBE_DOH_URL is set.

    Examples:
        dnsprobe dns query example.com
        dnsprobe dns query example.com -t MX --doh https://dns.google/resolve
        dnsprobe dns query example.com -t TXT -s 1.1.1.1
    """
    if server and doh_url:
        raise click.UsageError("--server and --doh cannot be combined")

    console = Console()
    timeout = timeout if timeout is not None else get_config().timeout

    try:
        if server:
            answer = query_udp(server, name, record_type, timeout_ms=int(timeout * 1000))
            status, records, error, source = answer.status, answer.records, answer.error, f"udp://{server}"
        else:
            result = resolve(name, record_type, doh_url=doh_url, timeout=timeout)
            status, records, error, source = result.status, result.records, result.error, result.source.value
    except CodecError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(2)

    if status == QueryStatus.ERROR:
        console.print(f"[red]Error:[/red] {error or 'query failed'}")
        raise SystemExit(1)

    if not records:
        detail = f" ({error})" if error else ""
        console.print(f"[yellow]No {record_type.name} records found for {name}{detail}[/yellow]")
        return

    table = Table(title=f"DNS Lookup: {name}", box=None)
    table.add_column("Type", style="cyan")
    table.add_column("Value", style="white")
    for value in records:
        table.add_row(record_type.name, value)

    console.print(table)
    console.print(f"[dim]Source: {source}[/dim]")


@dns.command()
@click.argument("name")
@click.option("-t", "--type", "record_type", default="A", callback=_record_type,
              help="Record type to check")
@click.option("-e", "--expected", help="Value every resolver should return")
@click.option("--timeout", type=float, help="Per-resolver timeout in seconds")
@click.option("-f", "--filter", "pattern", help="Only resolvers whose name matches")
@click.option("-w", "--workers", type=click.IntRange(min=1), help="Resolvers queried in parallel")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
def propagation(name: str, record_type: RecordType, expected: str | None,
                timeout: float | None, pattern: str | None, workers: int | None,
                as_json: bool):
    """Check DNS propagation across public resolvers.

    Exits with status 1 when --expected is given and any resolver
    does not return it.

    Examples:
        dnsprobe dns propagation example.com
        dnsprobe dns propagation example.com -t MX
        dnsprobe dns propagation example.com -e 93.184.216.34 --json
    """
    console = Console()

    try:
        catalog = load_catalog().filter(pattern)
    except CatalogError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(2)

    if not len(catalog):
        console.print(f"[yellow]No resolvers match {pattern!r}[/yellow]")
        raise SystemExit(2)

    try:
        if as_json:
            results = check_propagation(name, record_type, timeout, expected, catalog, workers)
        else:
            with console.status(f"[cyan]Checking propagation for {name}...[/cyan]"):
                results = check_propagation(name, record_type, timeout, expected, catalog, workers)
    except CodecError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(2)

    summary = summarize(results)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        status = "[green]Consistent[/green]" if summary.consistent else "[yellow]Inconsistent[/yellow]"

        console.print(f"\n[cyan]Propagation Status:[/cyan] {status}")
        console.print(f"[cyan]Servers Checked:[/cyan] {summary.total}")
        console.print(f"[cyan]Resolved:[/cyan] {summary.resolved}")
        console.print(f"[cyan]Failed:[/cyan] {summary.errors}")
        console.print(f"[cyan]Propagated:[/cyan] {summary.propagated}/{summary.total}\n")

        table = Table(title=f"{record_type.name} Propagation: {name}", box=None)
        table.add_column("Server", style="cyan")
        table.add_column("IPv4", style="dim")
        table.add_column("Status", style="white")
        table.add_column("Records", style="white")
        table.add_column("Propagated", style="white")
        table.add_column("Via", style="dim")
        table.add_column("Time", style="dim")

        for result in results:
            records = result.records_text or (result.error or "-")
            propagated = "[green]yes[/green]" if result.propagated else "[red]no[/red]"
            time_str = f"{result.response_time_ms:.0f}ms" if result.response_time_ms else "-"
            table.add_row(
                result.server,
                result.ipv4_primary,
                STATUS_STYLES[result.status],
                records,
                propagated,
                result.transport.value if result.transport else "-",
                time_str,
            )

        console.print(table)

        if not summary.consistent:
            console.print("\n[yellow]Warning: Different answers detected:[/yellow]")
            for i, answer in enumerate(summary.answers, 1):
                console.print(f"  Answer {i}: {', '.join(answer) if answer else '(empty)'}")

    if expected is not None and not summary.fully_propagated:
        raise SystemExit(1)


@dns.command()
@click.option("-f", "--filter", "pattern", help="Only resolvers whose name matches")
@click.option("--ipv4-only", is_flag=True, help="Print only the IPv4 addresses")
def resolvers(pattern: str | None, ipv4_only: bool):
    """List the resolvers used for propagation checks.

    Examples:
        dnsprobe dns resolvers
        dnsprobe dns resolvers -f cloud
        dnsprobe dns resolvers --ipv4-only
    """
    console = Console()

    try:
        catalog = load_catalog().filter(pattern)
    except CatalogError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(2)

    if ipv4_only:
        for address in catalog.ipv4_addresses():
            click.echo(address)
        return

    table = Table(title="Resolvers", box=None)
    table.add_column("Name", style="cyan")
    table.add_column("IPv4", style="white")
    table.add_column("DoH JSON", style="dim")
    table.add_column("DoH Wire", style="dim")

    for resolver in catalog:
        table.add_row(
            resolver.name,
            resolver.ipv4,
            resolver.doh_json_url or "-",
            resolver.doh_wire_url or "-",
        )

    console.print(table)
