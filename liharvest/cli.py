"""Command-line interface for liharvest."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from liharvest import Harvester, HarvestConfig, JobKind, save_json, __version__
from liharvest.config import LogFormat
from liharvest.core.exporter import export_profiles
from liharvest.exceptions import HarvestError, InvalidInputError

app = typer.Typer(
    name="liharvest",
    help="LinkedIn comment and profile harvester",
    add_completion=False,
)
keys_app = typer.Typer(help="Manage Apify API keys")
app.add_typer(keys_app, name="keys")
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"liharvest version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """liharvest - LinkedIn comment and profile harvester."""
    pass


def _config(quiet: bool = False) -> HarvestConfig:
    return HarvestConfig(log_format=LogFormat.JSON if quiet else LogFormat.CONSOLE)


def _expand_id(prefix: str, known_ids: list[str]) -> str:
    """Full id for a prefix shown in a table; unknown prefixes pass through."""
    matches = [i for i in known_ids if i.startswith(prefix)]
    if len(matches) > 1 and prefix not in matches:
        raise InvalidInputError(f"Id prefix '{prefix}' is ambiguous")
    return matches[0] if len(matches) == 1 else prefix


def _print_progress(stage: str, percent: int, message: str) -> None:
    console.print(f"[dim]{percent:>3}%[/dim] [cyan]{stage}[/cyan] {message}")


def _run_job(
    kind: JobKind,
    target,
    owner: Optional[str],
    key_id: Optional[str],
    token: Optional[str],
    output: Optional[Path],
    quiet: bool,
) -> None:
    config = _config(quiet)

    async def run():
        async with Harvester(config) as harvester:
            result = await harvester.run_job(
                kind,
                target,
                owner_id=owner,
                api_key_id=key_id,
                api_token=token,
                on_progress=None if quiet else _print_progress,
            )

        if not quiet:
            _print_result(result)
        if output:
            save_json(result, output)
            console.print(f"[dim]Saved to {output}[/dim]")

    try:
        asyncio.run(run())
    except HarvestError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.command()
def comments(
    post_url: str = typer.Argument(..., help="LinkedIn post URL"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    key_id: Optional[str] = typer.Option(None, "--key", "-k", help="Stored API key id"),
    token: Optional[str] = typer.Option(None, "--token", "-t", envvar="APIFY_TOKEN", help="Apify API token"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write result JSON here"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress progress output"),
):
    """Scrape the comments of a LinkedIn post."""
    _run_job(JobKind.POST_COMMENTS, post_url, owner, key_id, token, output, quiet)


@app.command()
def profiles(
    urls: list[str] = typer.Argument(..., help="LinkedIn profile URLs"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    key_id: Optional[str] = typer.Option(None, "--key", "-k", help="Stored API key id"),
    token: Optional[str] = typer.Option(None, "--token", "-t", envvar="APIFY_TOKEN", help="Apify API token"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write result JSON here"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress progress output"),
):
    """Scrape profile details, reusing cached profiles."""
    _run_job(JobKind.PROFILE_DETAILS, urls, owner, key_id, token, output, quiet)


@app.command()
def mixed(
    post_url: str = typer.Argument(..., help="LinkedIn post URL"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    key_id: Optional[str] = typer.Option(None, "--key", "-k", help="Stored API key id"),
    token: Optional[str] = typer.Option(None, "--token", "-t", envvar="APIFY_TOKEN", help="Apify API token"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write result JSON here"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress progress output"),
):
    """Scrape a post's comments, then its commenters' profiles."""
    _run_job(JobKind.MIXED, post_url, owner, key_id, token, output, quiet)


@app.command()
def jobs(
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    limit: int = typer.Option(50, "--limit", "-n", help="Number of jobs to show"),
):
    """List recent jobs."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.list_jobs(owner, limit)

    rows = asyncio.run(run())
    if not rows:
        console.print("No jobs yet")
        return

    table = Table(title="Jobs")
    table.add_column("ID", style="dim")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Results", justify="right")
    table.add_column("Created")
    table.add_column("Input", overflow="fold")

    colors = {"completed": "green", "failed": "red", "running": "yellow", "cancelled": "magenta"}
    for job in rows:
        color = colors.get(job.status.value, "white")
        table.add_row(
            job.id[:8],
            job.job_type.value,
            f"[{color}]{job.status.value}[/{color}]",
            str(job.results_count),
            job.created_at.strftime("%Y-%m-%d %H:%M"),
            job.input_url if not job.error_message else f"{job.input_url}\n[red]{job.error_message}[/red]",
        )
    console.print(table)


@app.command()
def cancel(
    job_id: str = typer.Argument(..., help="Job id"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
):
    """Mark a job cancelled. Accepts the short id shown by `jobs`."""

    async def run():
        async with Harvester(_config()) as harvester:
            recent = await harvester.list_jobs(owner)
            return await harvester.cancel_job(_expand_id(job_id, [j.id for j in recent]), owner)

    try:
        job = asyncio.run(run())
    except HarvestError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Job {job.id} cancelled")


@app.command()
def cached(
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    all_profiles: bool = typer.Option(False, "--all", "-a", help="Show the whole shared cache"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Export profiles to JSON"),
):
    """List stored profiles."""
    config = _config()

    async def run():
        async with Harvester(config) as harvester:
            if all_profiles:
                return await harvester.list_profiles()
            return await harvester.list_profiles(owner or config.default_owner_id)

    rows = asyncio.run(run())
    if output:
        export_profiles(rows, output)
        console.print(f"[dim]Saved {len(rows)} profiles to {output}[/dim]")
        return
    if not rows:
        console.print("No stored profiles")
        return

    table = Table(title=f"Profiles ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Headline", overflow="fold")
    table.add_column("Updated")
    table.add_column("URL", overflow="fold")
    if not all_profiles:
        table.add_column("Tags")

    for row in rows:
        data = row.profile_data
        name = data.get("fullName") or f"{data.get('firstName', '')} {data.get('lastName', '')}".strip()
        cells = [
            row.id[:8],
            name or "-",
            data.get("headline") or "-",
            row.last_updated.strftime("%Y-%m-%d"),
            row.linkedin_url,
        ]
        if not all_profiles:
            cells.append(", ".join(row.tags) or "-")
        table.add_row(*cells)
    console.print(table)


@app.command()
def forget(
    ids: list[str] = typer.Argument(..., help="Stored profile ids"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    purge: bool = typer.Option(False, "--purge", help="Delete from the shared cache for everyone"),
):
    """Remove profiles from your list (or the shared cache with --purge)."""
    config = _config()

    async def run():
        async with Harvester(config) as harvester:
            if purge:
                known = [p.id for p in await harvester.list_profiles()]
                return await harvester.purge_profiles([_expand_id(i, known) for i in ids])
            known = [p.id for p in await harvester.list_profiles(owner or config.default_owner_id)]
            return await harvester.delete_profiles([_expand_id(i, known) for i in ids], owner)

    try:
        removed = asyncio.run(run())
    except HarvestError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Removed {removed} profiles")


@keys_app.command("add")
def keys_add(
    name: str = typer.Argument(..., help="Key name"),
    token: str = typer.Argument(..., help="Apify API token"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
):
    """Store an API key."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.add_api_key(name, token, owner)

    try:
        key = asyncio.run(run())
    except HarvestError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Stored key '{key.key_name}' ({key.id})")


@keys_app.command("list")
def keys_list(owner: Optional[str] = typer.Option(None, "--owner", help="Owner id")):
    """List stored API keys."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.list_api_keys(owner)

    rows = asyncio.run(run())
    if not rows:
        console.print("No API keys stored")
        return

    table = Table(title="API keys")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Key")
    table.add_column("Active")
    for key in rows:
        table.add_row(key.id, key.key_name, key.masked, "✓" if key.is_active else "✗")
    console.print(table)


def _set_active(key_id: str, active: bool, owner: Optional[str]) -> None:
    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.set_api_key_active(key_id, active, owner)

    try:
        key = asyncio.run(run())
    except HarvestError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Key '{key.key_name}' {'enabled' if active else 'disabled'}")


@keys_app.command("enable")
def keys_enable(
    key_id: str = typer.Argument(..., help="Key id"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
):
    """Enable a stored key."""
    _set_active(key_id, True, owner)


@keys_app.command("disable")
def keys_disable(
    key_id: str = typer.Argument(..., help="Key id"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
):
    """Disable a stored key."""
    _set_active(key_id, False, owner)


@keys_app.command("remove")
def keys_remove(
    key_id: str = typer.Argument(..., help="Key id"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
):
    """Delete a stored key."""

    async def run():
        async with Harvester(_config()) as harvester:
            return await harvester.delete_api_key(key_id, owner)

    if asyncio.run(run()):
        console.print("[green]✓[/green] Key removed")
    else:
        console.print(f"[red]No key {key_id}[/red]")
        raise typer.Exit(1)


def _print_result(result):
    """Print job result summary."""
    job = result.job
    console.print(f"\n[bold]{job.job_type.value}[/bold] [dim]{job.id}[/dim]")
    console.print(f"  status: [green]{job.status.value}[/green], results: {job.results_count}")
    if result.comments:
        console.print(f"  [blue]{len(result.comments)}[/blue] comments")
    if result.profile_urls or result.profiles:
        console.print(
            f"  [blue]{len(result.profiles)}[/blue] profiles "
            f"({result.cache_hits} from cache, {result.scraped} scraped)"
        )
        for profile in result.profiles[:10]:
            name = profile.get("fullName") or profile.get("linkedinUrl", "?")
            headline = profile.get("headline") or ""
            console.print(f"    {name} [dim]{headline[:60]}[/dim]")
    console.print(f"  [dim]{result.duration_ms / 1000:.1f}s[/dim]")


if __name__ == "__main__":
    app()
