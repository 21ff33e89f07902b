"""vaultup CLI - Main commands."""
import asyncio
import os
from pathlib import Path
from typing import Optional

import aiohttp
import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

app = typer.Typer(
    name="vaultup",
    help="Chunked upload client",
    add_completion=False
)
console = Console()

DEFAULT_BASE_URL = "http://localhost:8008"


# Progress snapshots: ~/.config/vaultup/progress.db
def get_storage_path() -> Path:
    config_dir = Path.home() / ".config" / "vaultup"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "progress.db"


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def make_client(base_url: Optional[str], token: Optional[str]):
    from vaultup import VaultClient
    
    return VaultClient(
        token or os.environ.get("VAULTUP_TOKEN"),
        base_url=base_url or os.environ.get("VAULTUP_BASE_URL", DEFAULT_BASE_URL),
        storage=get_storage_path()
    )


def print_record(record) -> None:
    """Render one progress record."""
    if record is None:
        console.print("[yellow]No upload in progress[/yellow]")
        return
    
    colour = "red" if record.status.value == "error" else "green" if record.status.is_success else "cyan"
    console.print(f"[bold]Status:[/bold] [{colour}]{record.status.value}[/{colour}]")
    if record.filename:
        console.print(f"[bold]File:[/bold] {record.filename}")
    if record.progress is not None:
        console.print(f"[bold]Progress:[/bold] {record.progress}%")
    if record.message:
        console.print(f"[bold]Message:[/bold] {record.message}")
    if record.error:
        console.print(f"[bold]Error:[/bold] [red]{record.error}[/red]")
    if record.job_id:
        console.print(f"[bold]Job ID:[/bold] {record.job_id}")
    if record.cid:
        console.print(f"[bold]CID:[/bold] {record.cid}")
    if record.proof_set_id:
        console.print(f"[bold]Proof set:[/bold] {record.proof_set_id}")
    if record.is_stalled:
        console.print("[yellow]No status change for a while, the server may be stuck[/yellow]")


@app.command()
def upload(
    file_path: Path = typer.Argument(..., help="Local file to upload", exists=True),
    chunked: Optional[bool] = typer.Option(None, "--chunked/--single", help="Force chunked or single-shot upload"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", "-s", help="Chunk size in MiB"),
    concurrency: int = typer.Option(3, "--concurrency", "-c", help="Chunks uploading at once"),
    best_effort: bool = typer.Option(False, "--best-effort", help="Finalize even if some chunks failed"),
    no_track: bool = typer.Option(False, "--no-track", help="Do not wait for server processing"),
    base_url: Optional[str] = typer.Option(None, "--base-url", envvar="VAULTUP_BASE_URL", help="Server URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar="VAULTUP_TOKEN", help="Bearer token"),
):
    """Upload a file."""
    from vaultup import FinalizePolicy, VaultException
    from vaultup.client import CHUNKED_THRESHOLD
    from vaultup.core.utils import MIB, format_eta, format_file_size, format_speed
    
    async def do_upload():
        async with make_client(base_url, token) as vault:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console
            ) as progress:
                task = progress.add_task(f"Uploading {file_path.name}", total=100)
                
                def on_change(record):
                    if record is None:
                        return
                    description = record.message or record.status.value
                    session = vault.session
                    if session is not None and not session.is_terminal:
                        description = (
                            f"{description} {format_speed(session.average_speed)}, "
                            f"{format_eta(session.eta_seconds)} left"
                        )
                    progress.update(task, completed=record.progress or 0, description=description)
                
                vault.on('change', on_change)
                
                use_chunked = chunked
                if use_chunked is None:
                    use_chunked = bool(chunk_size) or file_path.stat().st_size > CHUNKED_THRESHOLD
                
                try:
                    if use_chunked:
                        result = await vault.upload_chunked(
                            file_path,
                            chunk_size=chunk_size * MIB if chunk_size else None,
                            max_concurrent_chunks=concurrency,
                            finalize_policy=FinalizePolicy.BEST_EFFORT if best_effort else FinalizePolicy.REQUIRE_ALL_COMPLETE,
                            track_status=not no_track
                        )
                    else:
                        result = await vault.upload_single(file_path, track_status=not no_track)
                except VaultException as e:
                    console.print(f"[red]Upload failed: {e.message}[/red]")
                    raise typer.Exit(1)
                except aiohttp.ClientError as e:
                    console.print(f"[red]Upload failed: {e}[/red]")
                    raise typer.Exit(1)
            
            console.print(f"[green]Uploaded:[/green] {file_path.name} ({format_file_size(file_path.stat().st_size)})")
            if use_chunked:
                console.print(f"Upload ID: {result.upload_id}")
                console.print(f"Job ID: {result.job_id}")
            print_record(vault.progress or (None if use_chunked else result))
    
    run_async(do_upload())


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job ID returned by an upload"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Poll until the job finishes"),
    base_url: Optional[str] = typer.Option(None, "--base-url", envvar="VAULTUP_BASE_URL", help="Server URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar="VAULTUP_TOKEN", help="Bearer token"),
):
    """Show the processing status of a job."""
    from vaultup import UploadProgress, VaultException
    
    async def show_status():
        async with make_client(base_url, token) as vault:
            try:
                if watch:
                    with console.status(f"Waiting for job {job_id}..."):
                        record = await vault.track(job_id)
                else:
                    record = UploadProgress.from_dict(await vault.job_status(job_id))
            except VaultException as e:
                console.print(f"[red]Failed to get status: {e.message}[/red]")
                raise typer.Exit(1)
            print_record(record)
    
    run_async(show_status())


@app.command()
def chunks(
    upload_id: str = typer.Argument(..., help="Chunked upload ID"),
    base_url: Optional[str] = typer.Option(None, "--base-url", envvar="VAULTUP_BASE_URL", help="Server URL"),
    token: Optional[str] = typer.Option(None, "--token", envvar="VAULTUP_TOKEN", help="Bearer token"),
):
    """Show how many chunks the server has received."""
    from vaultup import VaultException
    from vaultup.core.utils import format_file_size
    
    async def show_chunks():
        async with make_client(base_url, token) as vault:
            try:
                data = await vault.chunked_status(upload_id)
            except VaultException as e:
                console.print(f"[red]Failed to get upload status: {e.message}[/red]")
                raise typer.Exit(1)
        
        table = Table()
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Upload ID", str(data.get('uploadId', upload_id)))
        table.add_row("File", str(data.get('filename', '-')))
        if data.get('totalSize') is not None:
            table.add_row("Size", format_file_size(int(data['totalSize'])))
        table.add_row("Status", str(data.get('status', '-')))
        table.add_row("Chunks", f"{data.get('uploadedChunks', 0)}/{data.get('totalChunks', '?')}")
        if data.get('progress') is not None:
            table.add_row("Progress", f"{data['progress']}%")
        console.print(table)
    
    run_async(show_chunks())


@app.command()
def progress():
    """Show the stored upload progress."""
    from vaultup import GlobalProgressStore, SQLiteProgressStorage
    
    storage = SQLiteProgressStorage(get_storage_path())
    try:
        store = GlobalProgressStore(storage)
        print_record(store.rehydrate())
    finally:
        storage.close()


@app.command()
def clear():
    """Clear the stored upload progress."""
    from vaultup import SQLiteProgressStorage
    
    storage = SQLiteProgressStorage(get_storage_path())
    try:
        storage.mark_cleared()
    finally:
        storage.close()
    console.print("[green]Upload progress cleared[/green]")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
