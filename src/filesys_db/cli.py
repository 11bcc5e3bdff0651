import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from filesys_db.errors import FilesysDbError
from filesys_db.settings import FsSettings
from filesys_db.storage.blob_store import PathBlobStore

app = typer.Typer()

DbOption = Annotated[Path | None, typer.Option("--db", help="Database file (default: FSDB_DB_PATH).")]


@app.callback()
def main() -> None:
    """Virtual filesystem stored in a SQLite table."""


@contextmanager
def _open_store(db: Path | None) -> Iterator[PathBlobStore]:
    try:
        settings = FsSettings()
    except ValidationError as exc:
        typer.echo(f"invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    logging.basicConfig(
        level=getattr(logging, settings.fsdb_log_level, logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    location = db.expanduser() if db is not None else settings.fsdb_db_path
    try:
        with PathBlobStore.open(location, settings) as store:
            yield store
    except FilesysDbError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("write")
def write(
    path: Annotated[str, typer.Argument()],
    text: Annotated[str | None, typer.Option("--text")] = None,
    source: Annotated[Path | None, typer.Option("--from-file", exists=True, dir_okay=False)] = None,
    db: DbOption = None,
) -> None:
    if (text is None) == (source is None):
        raise typer.BadParameter("pass exactly one of --text or --from-file")
    with _open_store(db) as store:
        if text is not None:
            store.write_text(path, text)
        else:
            store.write_bytes(path, source.read_bytes())


@app.command("read")
def read(
    path: Annotated[str, typer.Argument()],
    binary: Annotated[bool, typer.Option("--binary")] = False,
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        if binary:
            stream = typer.get_binary_stream("stdout")
            stream.write(store.read_bytes(path))
            stream.flush()
        else:
            typer.echo(store.read_text(path), nl=False)


@app.command("ls")
def ls(
    dir_prefix: Annotated[str, typer.Argument()] = "",
    pattern: Annotated[str, typer.Option("--pattern")] = "*",
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        for path in sorted(store.list(dir_prefix, pattern)):
            typer.echo(path)


@app.command("stat")
def stat(
    path: Annotated[str, typer.Argument()],
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        record = store.stat(path)
    typer.echo(f"path={record.path} is_binary={record.is_binary} bytes={len(record.data)}")


@app.command("cp")
def cp(
    source_path: Annotated[str, typer.Argument()],
    dest_path: Annotated[str, typer.Argument()],
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        store.copy(source_path, dest_path)


@app.command("mv")
def mv(
    source_path: Annotated[str, typer.Argument()],
    dest_path: Annotated[str, typer.Argument()],
    overwrite: Annotated[bool, typer.Option("--overwrite")] = False,
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        store.move(source_path, dest_path, overwrite=overwrite)


@app.command("rm")
def rm(
    path: Annotated[str, typer.Argument()],
    db: DbOption = None,
) -> None:
    with _open_store(db) as store:
        if not store.delete(path):
            typer.echo(f"no file at {path}", err=True)


if __name__ == "__main__":
    app()
