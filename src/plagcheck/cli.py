"""CLI for PlagCheck.

Commands:
    init-db                       - Create the metadata tables
    upload <path> --student <id>  - Upload a file (or every file in a directory)
    show-file <id>                - Show one upload
    files --student/--hash        - List uploads by student or by content hash
    check                         - Report plagiarism groups
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from plagcheck.config import settings
from plagcheck.db import async_session_factory, engine, init_db
from plagcheck.errors import PlagCheckError
from plagcheck.grouping import PlagiarismDetector
from plagcheck.index import FileIndex
from plagcheck.models import FileRecord
from plagcheck.services import FileStorageService
from plagcheck.storage import ContentStore

app = typer.Typer(
    name="plagcheck",
    help="PlagCheck: content-addressed submission storage with exact-match plagiarism detection",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context, disposing the engine afterwards."""

    async def _run():
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(_run())


def build_store() -> ContentStore:
    return ContentStore(
        settings.storage_root,
        max_file_size=settings.max_file_size,
        chunk_size=settings.upload_chunk_size,
        extension=settings.blob_extension,
    )


def files_table(records: list[FileRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Student")
    table.add_column("Filename")
    table.add_column("Size", justify="right")
    table.add_column("SHA256")
    for r in records:
        table.add_row(str(r.id), str(r.student_id), r.filename, f"{r.file_size:,}", r.file_hash[:16] + "...")
    return table


@app.command("init-db")
def init_db_command():
    """Create the metadata tables if they do not exist."""
    run_async(init_db())
    console.print("[green]Database initialized.[/green]")


@app.command()
def upload(
    path: Annotated[Path, typer.Argument(help="File or directory to upload")],
    student: Annotated[UUID, typer.Option("--student", "-s", help="Uploading student's id")],
    recursive: Annotated[
        bool, typer.Option("--recursive", "-r", help="Recursively upload directories")
    ] = False,
):
    """Upload files as the given student."""
    if path.is_file():
        files_to_upload = [path]
    elif path.is_dir():
        pattern = "**/*" if recursive else "*"
        files_to_upload = sorted(f for f in path.glob(pattern) if f.is_file())
    else:
        console.print(f"[red]Error:[/red] Path does not exist: {path}")
        raise typer.Exit(1)

    if not files_to_upload:
        console.print("[yellow]No files found to upload.[/yellow]")
        raise typer.Exit(0)

    async def _upload() -> int:
        await init_db()
        service = FileStorageService(build_store(), async_session_factory)
        failures = 0
        for file_path in files_to_upload:
            console.print(f"  Uploading: {file_path.name}...", end=" ")
            try:
                with file_path.open("rb") as f:
                    record = await service.upload(student, file_path.name, f, file_path.stat().st_size)
            except PlagCheckError as e:
                failures += 1
                console.print(f"[red]ERROR[/red]: {e}")
                continue
            console.print(f"[green]OK[/green] → #{record.id} {record.file_hash[:16]}...")
        return failures

    console.print(f"[blue]Uploading {len(files_to_upload)} file(s)...[/blue]\n")
    failures = run_async(_upload())
    console.print(f"\n[bold]Summary:[/bold] {len(files_to_upload) - failures} uploaded, {failures} failed")
    if failures:
        raise typer.Exit(1)


@app.command("show-file")
def show_file(
    file_id: Annotated[int, typer.Argument(help="File record id")],
):
    """Show details for a single upload."""

    async def _show() -> FileRecord:
        async with async_session_factory() as session:
            return await FileIndex(session).get_by_id(file_id)

    try:
        record = run_async(_show())
    except PlagCheckError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    lines = [
        f"[bold]ID:[/bold] {record.id}",
        f"[bold]Student:[/bold] {record.student_id}",
        f"[bold]Filename:[/bold] {record.filename}",
        f"[bold]Size:[/bold] {record.file_size:,} bytes",
        f"[bold]SHA256:[/bold] {record.file_hash}",
        f"[bold]Created:[/bold] {record.created_at}",
    ]
    console.print(Panel("\n".join(lines), title="File Details"))


@app.command()
def files(
    student: Annotated[UUID | None, typer.Option("--student", "-s", help="List by student id")] = None,
    file_hash: Annotated[str | None, typer.Option("--hash", help="List by content hash")] = None,
):
    """List uploads by student or by content hash, in upload order."""
    if (student is None) == (file_hash is None):
        console.print("[red]Error:[/red] Pass exactly one of --student or --hash")
        raise typer.Exit(2)

    async def _list() -> list[FileRecord]:
        async with async_session_factory() as session:
            index = FileIndex(session)
            if student is not None:
                return await index.list_by_student(student)
            return await index.list_by_hash(file_hash.lower())

    records = run_async(_list())
    if not records:
        console.print("[yellow]No files found.[/yellow]")
        return
    title = f"Files of {student}" if student is not None else f"Files with hash {file_hash[:16]}..."
    console.print(files_table(records, title))


@app.command()
def check():
    """Report content uploaded by more than one distinct student."""

    async def _check():
        async with async_session_factory() as session:
            return await PlagiarismDetector(FileIndex(session)).detect()

    groups = run_async(_check())
    if not groups:
        console.print("[green]No plagiarism groups found.[/green]")
        return

    for group in groups:
        console.print(files_table(list(group.files), f"{group.hash[:16]}... ({group.count} students)"))
    console.print(f"\n[bold]Summary:[/bold] {len(groups)} group(s)")


if __name__ == "__main__":
    app()
