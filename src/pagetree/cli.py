"""Command-line interface for managing a page tree."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .config import PageTreeConfig, ensure_config
from .content.converters import ContentConverter
from .local.repository import LocalRepository
from .serve.permissions import PageRequest
from .site import Site, site_from_config
from .sync.service import SyncResult, SyncService
from .tree.errors import PageTreeError
from .tree.models import PageNode

app = typer.Typer(help="Manage a tree of pages kept in a flat document store.")
console = Console()

T = TypeVar("T")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _run(config: PageTreeConfig, work: Callable[[Site], Awaitable[T]]) -> T:
    """Run ``work`` against a freshly built site and report tree errors as a failed exit."""

    async def _main() -> T:
        site = site_from_config(config)
        try:
            return await work(site)
        finally:
            await site.close()

    try:
        return asyncio.run(_main())
    except PageTreeError as exc:
        status = exc.to_status()
        console.print(f"[red]{status['status']}[/red]: {escape(status['message'])}")
        raise typer.Exit(code=1) from exc


def _format_result(result: SyncResult, *, action: str) -> None:
    table = Table(title=f"Page Tree {action.title()} Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Processed pages", str(result.processed_pages))
    table.add_row("Created pages", str(result.created_pages))
    table.add_row("Updated pages", str(result.updated_pages))
    console.print(table)


def _add_branch(tree: Tree, nodes: list[PageNode]) -> None:
    for node in nodes:
        branch = tree.add(f"[bold]{node.page.title}[/bold] [dim]{node.page.slug} (rank {node.page.rank})[/dim]")
        _add_branch(branch, node.children)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a configuration TOML file",
    ),
    store_file: Optional[Path] = typer.Option(None, "--store", "-s", help="JSON file holding the pages"),
    store_url: Optional[str] = typer.Option(None, "--store-url", help="Base URL of a document API"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    try:
        config = ensure_config(store_file=store_file, store_url=store_url, config_path=config_path)
    except RuntimeError as exc:
        raise typer.BadParameter(str(exc)) from exc
    _configure_logging("DEBUG" if verbose else config.log_level)
    ctx.obj = {"config": config}


def _config(ctx: typer.Context) -> PageTreeConfig:
    return ctx.obj["config"]


@app.command()
def init(
    ctx: typer.Context,
    title: str = typer.Option("Home", "--title", "-t", help="Title of the home page"),
) -> None:
    """Create the home page if the store has none."""

    root = _run(_config(ctx), lambda site: site.ensure_root(title))
    console.print(f"Home page [bold]{root.title}[/bold] is at [bold]{root.slug}[/bold].")


@app.command()
def show(
    ctx: typer.Context,
    slug: str = typer.Argument("/", help="Address to resolve"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Resolve as this user"),
) -> None:
    """Resolve an address the way a page request would and describe the outcome."""

    response = _run(_config(ctx), lambda site: site.resolver.resolve(PageRequest(slug=slug, user=user)))

    table = Table(title=f"Request {slug}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Outcome", response.outcome.value)
    table.add_row("Status", str(response.status_code))
    if response.location:
        table.add_row("Location", response.location)
    if response.template:
        table.add_row("Template", response.template)
    page = response.context.get("page")
    if page is not None:
        table.add_row("Title", page.title)
        table.add_row("Type", page.type)
        table.add_row("Editable", "yes" if response.context.get("edit") else "no")
    if response.context.get("remainder"):
        table.add_row("Remainder", response.context["remainder"])
    ancestors = response.context.get("ancestors") or []
    if ancestors:
        table.add_row("Ancestors", " > ".join(ancestor.title for ancestor in ancestors))
    console.print(table)


@app.command()
def tree(
    ctx: typer.Context,
    slug: str = typer.Argument("/", help="Page whose subtree is shown"),
    depth: int = typer.Option(3, "--depth", "-d", min=0, help="Levels below the page to show"),
) -> None:
    """Print a page and its descendants."""

    async def _work(site: Site):
        page = await site.queries.get_page(slug)
        if page is None:
            return None, []
        return page, await site.queries.get_descendants(page, depth)

    page, children = _run(_config(ctx), _work)
    if page is None:
        console.print(f"[red]notfound[/red]: Page {slug!r} not found")
        raise typer.Exit(code=1)
    root = Tree(f"[bold]{page.title}[/bold] [dim]{page.slug}[/dim]")
    _add_branch(root, children)
    console.print(root)


@app.command()
def add(
    ctx: typer.Context,
    parent: str = typer.Argument(..., help="Slug of the parent page"),
    title: str = typer.Option(..., "--title", "-t", help="Title of the new page"),
    type_name: Optional[str] = typer.Option(None, "--type", help="Page type"),
    content: Optional[str] = typer.Option(None, "--content", help="JSON content for the type's sanitizer"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Act as this user"),
) -> None:
    """Add a page as the last child of PARENT."""

    data = _parse_content(content)
    page = _run(
        _config(ctx),
        lambda site: site.mutations.insert(parent, title, type_name, data, PageRequest(slug=parent, user=user)),
    )
    console.print(f"Created [bold]{page.slug}[/bold] (rank {page.rank}).")


@app.command()
def edit(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Current slug of the page"),
    title: str = typer.Option(..., "--title", "-t", help="New title"),
    new_slug: Optional[str] = typer.Option(None, "--slug", help="New address; defaults to the current one"),
    type_name: Optional[str] = typer.Option(None, "--type", help="Page type"),
    content: Optional[str] = typer.Option(None, "--content", help="JSON content for the type's sanitizer"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Act as this user"),
) -> None:
    """Change a page's title, type or address; descendants follow a new address."""

    data = _parse_content(content)

    async def _work(site: Site):
        current = await site.queries.get_page(slug)
        resolved_type = type_name or (current.type if current else None)
        return await site.mutations.rename(
            slug, title, new_slug or slug, resolved_type, data, PageRequest(slug=slug, user=user)
        )

    page = _run(_config(ctx), _work)
    console.print(f"Saved [bold]{page.slug}[/bold].")


@app.command()
def resume(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Slug the page had before an interrupted rename"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Act as this user"),
) -> None:
    """Finish moving the descendants of a page whose rename failed part way."""

    page = _run(_config(ctx), lambda site: site.mutations.resume_cascade(slug, PageRequest(slug=slug, user=user)))
    console.print(f"Descendants of [bold]{page.slug}[/bold] are in place.")


@app.command()
def remove(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Slug of the page to remove"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Act as this user"),
) -> None:
    """Remove a page that has no children."""

    parent = _run(_config(ctx), lambda site: site.mutations.remove(slug, PageRequest(slug=slug, user=user)))
    console.print(f"Removed [bold]{slug}[/bold]; parent is [bold]{parent}[/bold].")


@app.command()
def redirects(
    ctx: typer.Context,
    slug: str = typer.Argument(..., help="Former address to look up"),
) -> None:
    """Show where a former address redirects to."""

    target = _run(_config(ctx), lambda site: site.redirects.lookup(slug))
    if target is None:
        console.print(f"No redirect recorded for [bold]{slug}[/bold].")
        raise typer.Exit(code=1)
    console.print(f"{slug} -> [bold]{target}[/bold]")


@app.command("export")
def export_tree(
    ctx: typer.Context,
    output: Path = typer.Option(
        Path.cwd(),
        "--output",
        "-o",
        help="Directory to store the exported page tree",
    ),
    slug: str = typer.Option("/", "--from", help="Slug of the page to export with its descendants"),
) -> None:
    """Export pages into a directory of Markdown files."""

    output = output.resolve()

    async def _work(site: Site) -> SyncResult:
        service = SyncService(site.queries, site.mutations, LocalRepository(output, converter=ContentConverter()))
        return await service.export_tree(slug)

    result = _run(_config(ctx), _work)
    console.print(f"Exported pages into [bold]{output}[/bold].")
    _format_result(result, action="export")


@app.command("import")
def import_tree(
    ctx: typer.Context,
    workspace: Path = typer.Option(
        Path.cwd(),
        "--workspace",
        "-w",
        help="Directory containing an exported page tree",
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Act as this user"),
) -> None:
    """Import a directory of Markdown files, creating missing pages."""

    workspace = workspace.resolve()
    if not workspace.exists():
        raise typer.BadParameter(f"Workspace directory {workspace} does not exist")

    async def _work(site: Site) -> SyncResult:
        service = SyncService(site.queries, site.mutations, LocalRepository(workspace, converter=ContentConverter()))
        return await service.import_tree(PageRequest(user=user))

    result = _run(_config(ctx), _work)
    console.print("Import completed successfully.")
    _format_result(result, action="import")


def _parse_content(raw: Optional[str]) -> Optional[dict]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--content is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter("--content must be a JSON object")
    return data


def run() -> None:
    """Entry point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
