"""
CLI Entrypoint for the Drive exporter

Downloads a Google Drive folder tree to local disk, converting Google Docs,
Sheets and Slides to docx, xlsx and pptx.

Usage:
    drive-exporter --client-secret SECRET --client-token-dir DIR \\
        --folder-id FOLDER_ID --destination PATH [OPTIONS]
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from drive_exporter.cancellation import signal_cancelling_context
from drive_exporter.errors import ExporterError, OperationCancelledError
from drive_exporter.gdrive.client import get_drive_service
from drive_exporter.gdrive.config import load_config
from drive_exporter.gdrive.walker import TreeWalker
from drive_exporter.log_config import configure_logging

# Exit status used by shells for SIGINT
EXIT_CANCELLED = 130

app = typer.Typer(
    name="drive-exporter",
    help="Download Google Documents converting them to Office formats",
    add_completion=False,
)

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


@app.command()
def export(
    client_secret: Path = typer.Option(
        ...,
        "--client-secret",
        "-s",
        help="Path to the client secret file",
    ),
    client_token_dir: Path = typer.Option(
        ...,
        "--client-token-dir",
        "-t",
        help="Path to the directory where to store tokens",
    ),
    folder_id: str = typer.Option(
        ...,
        "--folder-id",
        "-i",
        help="ID of the folder to download (the long string from the folder URL)",
    ),
    destination: Path = typer.Option(
        ...,
        "--destination",
        "-o",
        help="Destination path for the downloaded files",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings.yaml configuration file",
        exists=True,
        dir_okay=False,
    ),
    write_scope: bool = typer.Option(
        False,
        "--write-scope",
        help="Also request write access (uses a separate cached token)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logs on stderr",
    ),
) -> None:
    """
    Mirror a Google Drive folder to a local directory.

    Folders become directories; Google Docs, Sheets and Slides are exported
    to .docx, .xlsx and .pptx. Other files are skipped.

    First run requires OAuth2 authorization - a browser window will open and
    the resulting token is cached in the token directory.

    Examples:
        drive-exporter -s client_secret.json -t ~/.drive-tokens -i 1abc123xyz -o ./mirror
    """
    configure_logging(verbose)

    try:
        settings = load_config(config)
        with signal_cancelling_context() as ctx:
            service = get_drive_service(
                ctx,
                client_secrets_path=client_secret,
                token_dir=client_token_dir,
                read=True,
                write=write_scope,
                config=settings,
                console=err_console,
            )
            walker = TreeWalker(service, ctx, config=settings, console=console)
            summary = walker.walk(folder_id, destination)
    except OperationCancelledError as e:
        err_console.print("[yellow]Cancelled[/]")
        raise typer.Exit(EXIT_CANCELLED) from e
    except ExporterError as e:
        err_console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1) from e

    console.print(
        f"Done: {summary.downloaded} documents exported, "
        f"{summary.folders} folders, {summary.skipped} skipped"
    )


if __name__ == "__main__":
    app()
