"""CLI implementation for adlstore."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer

from .client import StoreClient
from .config import DEFAULT_CONFIG_PATH, Config
from .core.model import ArgumentError, StoreError
from .core.util import error_asdict, model_asdict
from .logger import enable_stderr_logging

app = typer.Typer(add_completion=False, help="Work with files in a Data Lake store account.")


def _emit(obj: Any, jsonl: bool = False) -> None:
    if jsonl:
        typer.echo(json.dumps(obj))
    else:
        typer.echo(json.dumps(obj, indent=2))


def _client(ctx: typer.Context) -> StoreClient:
    config: Config = ctx.obj
    if not config.account.name:
        raise ArgumentError("no account given (use --account, ADLSTORE_ACCOUNT or the config file)")
    if not config.account.token:
        raise ArgumentError("no token given (use --token, ADLSTORE_TOKEN or the config file)")
    return StoreClient.from_config(config)


def _fail(err: Exception) -> None:
    _emit(error_asdict(err))
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Account host name"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token"),
    scheme: Optional[str] = typer.Option(None, "--scheme", help="URL scheme (https unless testing)"),
    config_file: Path = typer.Option(Path(DEFAULT_CONFIG_PATH), "--config", help="INI file with settings"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests to stderr"),
):
    """Global options shared by every command."""
    if verbose:
        enable_stderr_logging(logging.INFO)
    config = Config.load(str(config_file)).apply_environment()
    if account:
        config.account.name = account
    if token:
        config.account.token = token
    if scheme:
        config.account.scheme = scheme
    ctx.obj = config


@app.command()
def ls(
    ctx: typer.Context,
    path: str = typer.Argument("/", help="Directory to list"),
    fields: Optional[str] = typer.Option(None, "--fields", help="Comma-separated subset of keys to emit"),
    max_entries: int = typer.Option(0, "--max", min=0, help="Stop after N entries (0 = all)"),
):
    """List a directory, one JSON object per line."""
    sel_fields = fields.split(",") if fields else None
    try:
        with _client(ctx) as client:
            entries = client.enumerate_directory(path, max_entries=max_entries)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    for entry in entries:
        _emit(model_asdict(entry, fields=sel_fields), jsonl=True)


@app.command()
def stat(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File or directory"),
    summary: bool = typer.Option(False, "--summary", help="Emit the content summary instead"),
):
    """Show the directory entry (or content summary) of a path."""
    try:
        with _client(ctx) as client:
            obj = client.get_content_summary(path) if summary else client.get_directory_entry(path)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit(model_asdict(obj))


@app.command()
def cat(ctx: typer.Context, path: str = typer.Argument(..., help="File to print")):
    """Write a file's bytes to stdout."""
    try:
        with _client(ctx) as client, client.get_read_stream(path) as stream:
            while True:
                data = stream.read(stream.buffer_size)
                if not data:
                    break
                typer.echo(data, nl=False)
    except (StoreError, ArgumentError) as e:
        _fail(e)


@app.command()
def get(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Remote file"),
    local: Path = typer.Argument(..., help="Local destination"),
):
    """Download a file."""
    try:
        with _client(ctx) as client:
            size = client.download(path, local)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": True, "path": path, "local": str(local), "bytes": size})


@app.command()
def put(
    ctx: typer.Context,
    local: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local source"),
    path: str = typer.Argument(..., help="Remote file"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing file"),
):
    """Upload a file."""
    try:
        with _client(ctx) as client:
            size = client.upload(path, local, overwrite=overwrite)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": True, "path": path, "local": str(local), "bytes": size})


@app.command()
def append(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Remote file, created if missing"),
    local: Optional[Path] = typer.Argument(None, exists=True, dir_okay=False,
                                           help="Local file with the bytes, or stdin when absent"),
):
    """Append one record to a file with a concurrent append."""
    data = local.read_bytes() if local else sys.stdin.buffer.read()
    try:
        with _client(ctx) as client:
            client.append_bytes(path, data)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": True, "path": path, "bytes": len(data)})


@app.command()
def mkdir(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Directory to create, with parents"),
    permission: Optional[str] = typer.Option(None, "--permission", "-p", help="Octal permission, e.g. 750"),
):
    """Create a directory."""
    try:
        with _client(ctx) as client:
            ok = client.create_directory(path, permission)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": ok, "path": path})
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def rm(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File or directory"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Delete directory contents too"),
):
    """Delete a path."""
    try:
        with _client(ctx) as client:
            ok = client.delete_recursive(path) if recursive else client.delete(path)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": ok, "path": path})
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def mv(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Existing path"),
    destination: str = typer.Argument(..., help="New path"),
):
    """Rename a path."""
    try:
        with _client(ctx) as client:
            ok = client.rename(path, destination)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": ok, "path": path, "destination": destination})
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def concat(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Destination file"),
    sources: List[str] = typer.Argument(..., help="Files to join, in order"),
    delete_source_directory: bool = typer.Option(False, "--delete-source-dir",
                                                 help="Remove the sources' directory afterwards"),
):
    """Concatenate files into a new file."""
    try:
        with _client(ctx) as client:
            client.concatenate_files(path, sources, delete_source_directory)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": True, "path": path, "sources": sources})


@app.command()
def getacl(ctx: typer.Context, path: str = typer.Argument(..., help="File or directory")):
    """Show the ACL of a path."""
    try:
        with _client(ctx) as client:
            status = client.get_acl_status(path)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({
        "entries": [str(e) for e in status.entries],
        "owner": status.owner,
        "group": status.group,
        "permission": status.permission,
    })


@app.command()
def setacl(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File or directory"),
    acl_spec: str = typer.Argument(..., help="Entries such as user:bob:r-x,default:group::r--"),
    modify: bool = typer.Option(False, "--modify", "-m", help="Merge into the existing ACL instead of replacing"),
):
    """Replace (or modify) the ACL of a path."""
    try:
        with _client(ctx) as client:
            if modify:
                client.modify_acl_entries(path, acl_spec)
            else:
                client.set_acl(path, acl_spec)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"success": True, "path": path, "acl_spec": acl_spec})


@app.command()
def access(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File or directory"),
    rwx: str = typer.Argument(..., help="Permission to check, e.g. r-x"),
):
    """Check whether the caller has the given access. Exit code 1 when denied."""
    try:
        with _client(ctx) as client:
            allowed = client.check_access(path, rwx)
    except (StoreError, ArgumentError) as e:
        _fail(e)
    _emit({"path": path, "rwx": rwx, "allowed": allowed})
    if not allowed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
