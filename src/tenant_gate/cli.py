"""Typer CLI for Tenant-Gate."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="tenant-gate", help="Tenant-Gate: tenant resolution and trust-boundary tooling")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Tenant-Gate API server."""
    import uvicorn
    from tenant_gate.app import create_app

    console.print(f"[bold green]Starting Tenant-Gate on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def identify(
    address: str = typer.Argument(..., help="Physical peer address"),
    forwarded: Optional[str] = typer.Option(None, "--forwarded", "-f", help="Forwarded-address header value"),
):
    """Show the rate-limit partition key for a peer (offline, no DB required)."""
    from tenant_gate.common.config import get_settings
    from tenant_gate.network import ClientIdentifier, parse_address

    identifier = ClientIdentifier(get_settings().trusted_proxies)
    peer = parse_address(address)
    trusted = peer is not None and identifier.is_trusted_proxy(peer)
    key = identifier.identify(address, forwarded)

    label = "[green]trusted proxy[/green]" if trusted else "[yellow]untrusted[/yellow]"
    console.print(f"Peer {address}: {label}")
    console.print(f"[bold]{key}[/bold]")


@app.command()
def resolve(
    host: str = typer.Option("", help="Request host"),
    path: str = typer.Option("/", help="Request path"),
    header: Optional[int] = typer.Option(None, "--header", help="Tenant id header value"),
    claim: Optional[int] = typer.Option(None, "--claim", help="Verified tenant_id claim"),
):
    """Resolve a tenant against the configured database."""
    from tenant_gate.common.config import get_settings
    from tenant_gate.common.exceptions import TenantGateError
    from tenant_gate.deps import get_db, get_resolver
    from tenant_gate.identity import RequestIdentity

    settings = get_settings()
    headers = {settings.tenant_header_name: str(header)} if header is not None else {}
    identity = (
        RequestIdentity.from_claims({settings.tenant_claim_name: claim})
        if claim is not None
        else RequestIdentity.anonymous()
    )

    async def _run():
        db = get_db()
        await db.init()
        try:
            return await get_resolver().resolve(host or None, headers, identity, path)
        finally:
            await db.close()

    try:
        resolved = asyncio.run(_run())
    except TenantGateError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    console.print(f"[bold green]{resolved.tenant_id}[/bold green] (from {resolved.source})")


@app.command("create-tenant")
def create_tenant(
    name: str = typer.Argument(..., help="Display name"),
    slug: str = typer.Argument(..., help="URL slug"),
    domain: Optional[str] = typer.Option(None, help="Bound host name"),
    feature: list[str] = typer.Option([], "--feature", help="Feature flag (repeatable)"),
    setting: list[str] = typer.Option([], "--setting", help="key=value setting (repeatable)"),
):
    """Provision a tenant (development seeding)."""
    from tenant_gate.deps import get_db, get_tenant_service
    from tenant_gate.tenants.schemas import TenantCreate

    pairs = dict(item.split("=", 1) for item in setting if "=" in item)
    body = TenantCreate(name=name, slug=slug, domain=domain, features=feature, settings=pairs)

    async def _run():
        db = get_db()
        await db.init()
        await db.create_all()
        svc = get_tenant_service()
        try:
            async with db.get_session() as session:
                tenant = await svc.create_tenant(
                    session,
                    name=body.name,
                    slug=body.slug,
                    domain=body.domain,
                    features=body.features,
                )
                for key, value in body.settings.items():
                    await svc.set_setting(session, tenant.id, key, value)
                return tenant.id
        finally:
            await db.close()

    tenant_id = asyncio.run(_run())
    console.print(f"[bold green]Created tenant {tenant_id}[/bold green] ({body.slug})")


@app.command("list-tenants")
def list_tenants():
    """List provisioned tenants."""
    from tenant_gate.deps import get_db, get_tenant_service

    async def _run():
        db = get_db()
        await db.init()
        try:
            async with db.get_session() as session:
                return await get_tenant_service().list_tenants(session)
        finally:
            await db.close()

    table = Table("id", "slug", "domain", "active", "features")
    for t in asyncio.run(_run()):
        table.add_row(str(t.id), t.slug, t.domain or "", "yes" if t.is_active else "no", t.features or "")
    console.print(table)


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Tenant-Gate server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, json.JSONDecodeError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
