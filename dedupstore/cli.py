#!/usr/bin/env python3
"""
Dedup File Store CLI

Command-line interface for the content-addressable file store.

Usage:
    dedupstore serve                          # Run the REST API
    dedupstore upload FILE                    # Store a file
    dedupstore download FILE_ID -o OUT        # Copy a stored file to disk
    dedupstore stage FILE_ID --type user --id 42
    dedupstore delete FILE_ID                 # Delete a file (and sharers)
    dedupstore purge                          # Delete everything
    dedupstore archived USER_ID               # List a user's archived files
    dedupstore stats                          # Show store statistics
"""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

import aiofiles
import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler

from .config import load_config
from .errors import FileServiceError
from .service import FileService
from .archive import format_size

console = Console()


def setup_logging(level: str = 'INFO', verbose: bool = False):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def run_with_service(config, operation):
    """
    Run an async operation against a started service.

    Service errors are printed instead of raised and turn into a non-zero
    exit code.
    """
    async def run():
        async with FileService(config) as service:
            return await operation(service)

    try:
        return asyncio.run(run())
    except FileServiceError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise SystemExit(1)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(), help='JSON config file')
@click.option('--data-dir', help='Data directory')
@click.pass_context
def cli(ctx, verbose, config_path, data_dir):
    """Dedup File Store - content-addressable storage with bloom-filter dedup."""
    try:
        config = load_config(Path(config_path) if config_path else None)
        if data_dir:
            config = replace(
                config, data_dir=Path(data_dir), blob_dir=None, temp_dir=None, db_path=None
            )
    except ValueError as e:
        raise click.UsageError(f"Invalid configuration: {e}")

    setup_logging(config.log_level, verbose)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host', default=None, help='API host')
@click.option('--port', default=None, type=int, help='API port')
@click.pass_context
def serve(ctx, host, port):
    """Run the REST API."""
    config = ctx.obj['config']
    host = host or config.api_host
    port = port or config.api_port

    console.print(Panel.fit(
        f"[bold green]Dedup File Store[/bold green]\n\n"
        f"Blob Dir: [blue]{config.blob_dir}[/blue]\n"
        f"Database: [blue]{config.db_path}[/blue]\n"
        f"Archive: [yellow]{config.archive_bucket or 'not configured'}[/yellow]",
        title="Service Info"
    ))
    console.print(f"\n[dim]REST API available at http://localhost:{port}[/dim]")
    console.print(f"[dim]API docs at http://localhost:{port}/docs[/dim]\n")

    from .api import run_api_server

    try:
        asyncio.run(run_api_server(FileService(config), host=host, port=port))
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', help='Filename to record (defaults to the file name)')
@click.pass_context
def upload(ctx, file_path, name):
    """Store a file."""
    file_path = Path(file_path)

    async def operation(service):
        async with aiofiles.open(file_path, 'rb') as f:
            payload = await f.read()
        return await service.upload(payload, name or file_path.name)

    result = run_with_service(ctx.obj['config'], operation)

    status = "[yellow]deduplicated[/yellow]" if result.already_existed else "[green]new blob[/green]"
    console.print(Panel.fit(
        f"[bold green]File Uploaded[/bold green]\n\n"
        f"Name: [cyan]{result.filename}[/cyan]\n"
        f"Content: {status}\n\n"
        f"[bold]File ID:[/bold]\n"
        f"[green]{result.file_id}[/green]",
        title="Upload"
    ))


@cli.command()
@click.argument('file_id')
@click.option('--output', '-o', type=click.Path(), help='Output path')
@click.pass_context
def download(ctx, file_id, output):
    """Copy a stored file to disk."""
    async def operation(service):
        result = await service.download(file_id, 'local')
        output_path = Path(output) if output else Path(result.filename or result.path.name)

        async with aiofiles.open(output_path, 'wb') as f:
            async for chunk in result.stream:
                await f.write(chunk)
        return output_path, result.expires_in

    output_path, expires_in = run_with_service(ctx.obj['config'], operation)
    console.print(f"[green]✓ Downloaded to: {output_path}[/green]")
    if expires_in is not None:
        console.print(f"[dim]Record expires in {expires_in / 86400:.1f} days[/dim]")


@cli.command()
@click.argument('file_id')
@click.option('--type', 'archive_type', required=True,
              type=click.Choice(['user', 'room']), help='Archive owner type')
@click.option('--id', 'owner_id', required=True, help='User or room ID')
@click.pass_context
def stage(ctx, file_id, archive_type, owner_id):
    """Push a stored file to the remote archive."""
    async def operation(service):
        return await service.download(
            file_id, 'staging-area', archive_type=archive_type, owner_id=owner_id
        )

    result = run_with_service(ctx.obj['config'], operation)
    console.print(f"[green]✓ Staged {result.filename} to: {result.location}[/green]")


@cli.command()
@click.argument('file_id')
@click.pass_context
def delete(ctx, file_id):
    """Delete a file and every upload sharing its content."""
    async def operation(service):
        return await service.delete(file_id)

    result = run_with_service(ctx.obj['config'], operation)
    console.print(
        f"[green]✓ Deleted {result.file_id} "
        f"({result.records_removed} records removed)[/green]"
    )


@cli.command()
@click.confirmation_option(prompt='Delete every stored file?')
@click.pass_context
def purge(ctx):
    """Delete every stored file and reset the dedup filter."""
    async def operation(service):
        return await service.delete_all()

    result = run_with_service(ctx.obj['config'], operation)
    console.print(
        f"[green]✓ Removed {result.blobs_removed} blobs and "
        f"{result.records_removed} records[/green]"
    )


@cli.command()
@click.argument('user_id')
@click.pass_context
def archived(ctx, user_id):
    """List a user's files in the remote archive."""
    async def operation(service):
        return await service.list_archived(user_id)

    files = run_with_service(ctx.obj['config'], operation)

    if not files:
        console.print("[yellow]No archived files[/yellow]")
        return

    table = Table(title=f"Archived Files ({user_id})")
    table.add_column("Original Name", style="cyan")
    table.add_column("Stored As", style="green")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Last Modified")

    for f in files:
        table.add_row(
            f.original_name,
            f.filename[:16] + "...",
            f.size,
            f.last_modified.isoformat() if f.last_modified else "-",
        )

    console.print(table)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show store statistics."""
    async def operation(service):
        return await service.get_stats()

    stats = run_with_service(ctx.obj['config'], operation)
    index = stats['index']

    console.print(Panel.fit(
        f"[bold]Storage[/bold]\n"
        f"  Blobs: [yellow]{stats['blobs']}[/yellow]\n"
        f"  Size: [yellow]{format_size(stats['bytes'])}[/yellow]\n"
        f"  Records: [yellow]{stats['records']}[/yellow]\n\n"
        f"[bold]Bloom Filter[/bold]\n"
        f"  Elements: [yellow]{index['elements']}[/yellow] / {index['capacity']}\n"
        f"  Counters: [yellow]{index['size']}[/yellow]\n"
        f"  Hash functions: [yellow]{index['hash_count']}[/yellow]\n"
        f"  Target error rate: [yellow]{index['error_rate']}[/yellow]\n"
        f"  Estimated error rate: [yellow]{index['estimated_rate']:.6f}[/yellow]",
        title="Dedup Store Status"
    ))


if __name__ == '__main__':
    cli()
