"""CLI for coffer-client."""

from pathlib import Path
from typing import List, Optional
import logging
import os

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .bulk import BulkUpload
from .config import load_settings
from .connection import Connection, new_connection
from .errors import BlobReadError, CofferError, ConflictError, UnauthorizedError
from .hashing import hash_file
from .models import BulkResult, UploadResult
from .sources import BlobFile
from .upload import upload as single_upload


app = typer.Typer(help="""\
Client for a coffer content-addressed blob server. Hash files into blob
references, check a server is up, list its storages and upload blobs one at
a time or in bulk over a single streaming request.""")

console = Console()


def _humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def _connect(url: Optional[str]) -> Connection:
    """Open a connection from --url or the configured server.

    Raises:
        typer.Exit: If no server URL is known or the config is invalid
    """
    try:
        settings = load_settings()
        config = settings.connection_config()
    except ValueError as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)

    url = url or settings.url
    if not url:
        console.print("[red]✗[/red] No server URL given")
        console.print("[dim]Pass --url or set COFFER_URL (or 'url' in ~/.coffer/config.yaml)[/dim]")
        raise typer.Exit(1)
    return new_connection(url, config)


def _print_results(received: List[UploadResult], errors: Optional[list] = None) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Blob reference")
    table.add_column("Size", justify="right")
    for result in received:
        table.add_row(result.blobref, _humanize_size(result.size))
    console.print(table)

    if errors:
        console.print(f"\n[red]Rejected blobs ({len(errors)}):[/red]")
        for error in errors:
            console.print(f"  [red]•[/red] {escape(str(error))}")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    if verbose or os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("hash")
def hash_cmd(
    files: List[Path] = typer.Argument(..., help="Files to hash"),
):
    """Print the blob reference of each file."""
    failed = False
    for path in files:
        try:
            console.print(f"{hash_file(path)}  {path}")
        except BlobReadError as e:
            console.print(f"[red]✗[/red] {escape(str(e))}")
            failed = True
    if failed:
        raise typer.Exit(1)


@app.command()
def ping(
    url: Optional[str] = typer.Option(None, "--url", help="Server URL"),
):
    """Check the server is reachable."""
    with _connect(url) as conn:
        if conn.ping():
            console.print(f"[green]✓[/green] {conn.url} is reachable")
        else:
            console.print(f"[red]✗[/red] {conn.url} is unreachable")
            raise typer.Exit(1)


@app.command()
def storages(
    url: Optional[str] = typer.Option(None, "--url", help="Server URL"),
):
    """List the storages hosted by the server."""
    with _connect(url) as conn:
        try:
            containers = conn.storages()
        except CofferError as e:
            console.print(f"[red]✗[/red] Listing storages failed: {escape(str(e))}")
            raise typer.Exit(1)

    if not containers:
        console.print("[yellow]No storages on this server[/yellow]")
        return
    for name in containers:
        console.print(f"  {name}")


@app.command()
def upload(
    storage: str = typer.Argument(..., help="Storage name"),
    files: List[Path] = typer.Argument(..., help="Files to upload"),
    url: Optional[str] = typer.Option(None, "--url", help="Server URL"),
    bulk: Optional[bool] = typer.Option(
        None, "--bulk/--single",
        help="Send all files over one request (default when uploading several files)",
    ),
):
    """Upload files to a storage.

    Examples:
        coffer upload photos a.jpg                # Single upload
        coffer upload photos a.jpg b.jpg          # Bulk upload
        coffer upload photos *.jpg --single       # One request per file
    """
    use_bulk = bulk if bulk is not None else len(files) > 1

    with _connect(url) as conn:
        remote = conn.storage(storage)
        try:
            if use_bulk:
                console.print(f"[bold]Uploading {len(files)} file(s) to {remote.url}...[/bold]")
                with BulkUpload(remote) as batch:
                    for path in files:
                        batch.submit(BlobFile(path))
                    result = batch.finalize()
            else:
                received = []
                for path in files:
                    console.print(f"[bold]Uploading {path} to {remote.url}...[/bold]")
                    received.append(single_upload(remote, BlobFile(path)))
                result = BulkResult(received=received)
        except ConflictError as e:
            console.print(f"[red]✗[/red] Conflict: {escape(str(e))}")
            raise typer.Exit(1)
        except UnauthorizedError as e:
            console.print(f"[red]✗[/red] Not authorized: {escape(str(e))}")
            raise typer.Exit(1)
        except CofferError as e:
            console.print(f"[red]✗[/red] Upload failed: {escape(str(e))}")
            raise typer.Exit(1)

    _print_results(result.received, result.errors)
    if not result.ok:
        raise typer.Exit(1)
    console.print("[green]✓[/green] Uploaded successfully")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
