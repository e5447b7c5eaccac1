"""
webhdfs CLI：连接信息保存一次到本地，之后所有命令直接使用。
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Awaitable, Callable, Optional, TypeVar
from urllib.parse import urlparse

import typer

from webhdfsapi import DirectoryEntry, WebHDFSClient, WebHDFSError
from webhdfsapi.client import PREFIX
from webhdfsapi.cli_config import clear_config, load_config, save_config

T = TypeVar("T")


def _format_size(n: int) -> str:
    """将字节数格式化为人类可读（KiB/MiB/GiB）。"""
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KiB"
    if n < 1024 * 1024 * 1024:
        return f"{n / (1024 * 1024):.1f} MiB"
    return f"{n / (1024 * 1024 * 1024):.1f} GiB"


def _format_time(ms: int) -> str:
    """毫秒时间戳 → UTC 时间字符串；0 表示未知。"""
    if ms <= 0:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _make_progress_callback(filename: str) -> tuple[Callable[[int, int], None], Callable[[], None]]:
    """返回 (on_progress(sent, total) 回调, finish 回调)。进度条输出到 stderr。"""
    last_pct: list[int] = [-1]
    bar_width = 24

    def on_progress(sent: int, total_bytes: int) -> None:
        if total_bytes <= 0:
            return
        pct = min(100, int(100 * sent / total_bytes))
        if pct != last_pct[0] and (pct % 5 == 0 or pct == 100 or sent == total_bytes):
            last_pct[0] = pct
            filled = int(bar_width * pct / 100) if pct < 100 else bar_width
            bar = "=" * filled + ">" * (1 if filled < bar_width else 0) + " " * (bar_width - filled - (1 if filled < bar_width else 0))
            sys.stderr.write(f"\r  {filename} [{bar}] {pct}% {_format_size(sent)}/{_format_size(total_bytes)}   ")
            sys.stderr.flush()

    def finish() -> None:
        sys.stderr.write("\n")
        sys.stderr.flush()

    return on_progress, finish


app = typer.Typer(
    name="webhdfs",
    help="WebHDFS CLI. Save the NameNode URL once; use it for all commands.",
)

# 可选参数：覆盖或补充 base_url（未登录时必填）
_base_url_option: type = Annotated[
    Optional[str],
    typer.Option("--base-url", "-b", help="Override saved base URL (or required if not logged in)"),
]


@app.callback()
def _main_options(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log HTTP requests to stderr")] = False,
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _parse_path_or_url(path_or_url: str) -> tuple[str, str | None]:
    """
    解析「路径」或「完整链接」，兼容直接粘贴 WebHDFS 地址。
    返回 (path, base_url_override)。
    - http(s)://host[:port][/gateway]/webhdfs/v1/a/b → ("/a/b", "http(s)://host[:port][/gateway]/")
    - http(s)://host[:port]/a/b（无 webhdfs/v1）→ ("/a/b", "http(s)://host[:port]/")
    - 其他（含 hdfs:// URI、相对路径）原样返回，交给客户端解析
    """
    raw = (path_or_url or "").strip()
    if not raw:
        return "", None
    parsed = urlparse(raw)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        full_path = parsed.path or "/"
        marker = f"/{PREFIX}"
        if marker in full_path:
            before, after = full_path.split(marker, 1)
            return after or "/", f"{parsed.scheme}://{parsed.netloc}{before}/"
        return full_path, f"{parsed.scheme}://{parsed.netloc}/"
    return raw, None


async def _connect(base_url: str | None) -> WebHDFSClient | None:
    cfg = load_config()
    url = base_url or (cfg and cfg.get("base_url"))
    if not url:
        return None
    user = cfg.get("user") if cfg else None
    return await WebHDFSClient.connect(url, user=user, timeout=30.0)


def _run(base_url: str | None, action: Callable[[WebHDFSClient], Awaitable[T]]) -> T:
    """连接、执行 action、关闭；失败时输出 error: ... 并以 1 退出。"""

    async def runner() -> T:
        client = await _connect(base_url)
        if client is None:
            typer.echo("error: no saved base URL. run 'webhdfs login' or pass --base-url", err=True)
            raise typer.Exit(1)
        async with client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except (WebHDFSError, OSError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(1)


def _check(ok: bool, what: str, done: str) -> None:
    if not ok:
        typer.echo(f"error: {what} returned false", err=True)
        raise typer.Exit(1)
    typer.echo(done)


# ------------------------- login / logout / auth -------------------------


@app.command("login", help="Save NameNode URL and user to local config")
def login(
    base_url: Annotated[Optional[str], typer.Option("--base-url", "-b", help="WebHDFS base URL")] = None,
    user: Annotated[Optional[str], typer.Option("--user", "-u", help="user.name sent with every request")] = None,
) -> None:
    base_url = base_url or input("Base URL (e.g. http://namenode:9870/): ").strip()
    if not base_url:
        typer.echo("error: base URL required", err=True)
        raise typer.Exit(1)
    if user is None:
        user = input("User (empty for none): ").strip() or None
    save_config(base_url, user)
    typer.echo("Saved.")


@app.command("logout", help="Clear saved config")
def logout() -> None:
    if clear_config():
        typer.echo("Cleared.")
    else:
        typer.echo("No saved config.")


auth_app = typer.Typer(help="Auth subcommands")
app.add_typer(auth_app, name="auth")


@auth_app.command("status", help="Show whether a config is saved")
def auth_status() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in.")
        return
    typer.echo(f"base_url: {cfg.get('base_url', '')}")
    typer.echo(f"user: {cfg.get('user') or '-'}")


@app.command("info", help="Show saved base_url and user")
def info_cmd() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in. Run 'webhdfs login' or pass --base-url for commands.")
        return
    typer.echo(f"base_url: {cfg.get('base_url')}")
    typer.echo(f"user: {cfg.get('user') or '-'}")


@app.command("home", help="Print the home directory")
def home_cmd(base_url: _base_url_option = None) -> None:
    home = _run(base_url, lambda c: c.get_home_directory())
    typer.echo(home or "/")


# ------------------------- list / stat / du / checksum -------------------------


def _format_entry(e: DirectoryEntry) -> str:
    kind = "d" if e.is_directory else "-"
    return f"  {kind}{e.permission:>4}  {e.owner}  {e.group}  {e.length}  {_format_time(e.modification_time)}  {e.path_suffix}"


def _cmd_list_impl(path: str, base_url: str | None) -> None:
    path, url_override = _parse_path_or_url(path)
    listing = _run(url_override or base_url, lambda c: c.list_status(path))
    for e in listing:
        typer.echo(_format_entry(e))


@app.command("list", help="List directory")
def list_cmd(
    path: Annotated[str, typer.Argument(help="Directory path or URL (default: /)")] = "/",
    base_url: _base_url_option = None,
) -> None:
    _cmd_list_impl(path, base_url)


@app.command("ls", help="Alias for list")
def ls_cmd(
    path: Annotated[str, typer.Argument(help="Directory path or URL (default: /)")] = "/",
    base_url: _base_url_option = None,
) -> None:
    _cmd_list_impl(path, base_url)


@app.command("stat", help="Show file status")
def stat_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    e = _run(url_override or base_url, lambda c: c.get_file_status(path))
    typer.echo(f"type: {e.type}")
    typer.echo(f"permission: {e.permission}")
    typer.echo(f"owner: {e.owner}")
    typer.echo(f"group: {e.group}")
    typer.echo(f"length: {e.length}")
    typer.echo(f"replication: {e.replication}")
    typer.echo(f"block_size: {e.block_size}")
    typer.echo(f"access_time: {_format_time(e.access_time)}")
    typer.echo(f"modification_time: {_format_time(e.modification_time)}")


@app.command("du", help="Show content summary")
def du_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    s = _run(url_override or base_url, lambda c: c.get_content_summary(path))
    typer.echo(f"directories: {s.directory_count}")
    typer.echo(f"files: {s.file_count}")
    typer.echo(f"length: {s.length} ({_format_size(s.length)})")
    typer.echo(f"space_consumed: {s.space_consumed}")
    typer.echo(f"quota: {s.quota}")
    typer.echo(f"space_quota: {s.space_quota}")


@app.command("checksum", help="Show file checksum")
def checksum_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    cs = _run(url_override or base_url, lambda c: c.get_file_checksum(path))
    typer.echo(f"{cs.algorithm}  {cs.checksum}  {cs.length}")


# ------------------------- download / upload -------------------------


@app.command("download", help="Download a file")
def download_cmd(
    remote_path: Annotated[str, typer.Argument(help="Remote path or URL")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Local path (default: same name)")] = None,
    offset: Annotated[int, typer.Option("--offset", help="Start offset in bytes")] = -1,
    length: Annotated[int, typer.Option("--length", help="Number of bytes to read")] = -1,
    base_url: _base_url_option = None,
) -> None:
    remote, url_override = _parse_path_or_url(remote_path)
    out = output if output is not None else Path(Path(remote).name or "download")

    async def action(client: WebHDFSClient) -> int:
        async with await client.open_file(remote, offset, length) as stream:
            if not stream.is_success:
                body = (await stream.read()).decode("utf-8", errors="replace")
                typer.echo(f"error: download {stream.status_code} {body}", err=True)
                raise typer.Exit(1)
            return await stream.save(out)

    written = _run(url_override or base_url, action)
    typer.echo(f"Saved {_format_size(written)} to {out}.")


@app.command("upload", help="Upload a local file")
def upload_cmd(
    path: Annotated[Path, typer.Argument(help="Local file path")],
    remote_path: Annotated[str, typer.Argument(help="Remote file path or URL")],
    no_overwrite: Annotated[bool, typer.Option("--no-overwrite", help="Fail if the remote file exists")] = False,
    progress: Annotated[bool, typer.Option("--progress", "-p", help="Show upload progress")] = False,
    base_url: _base_url_option = None,
) -> None:
    if not path.is_file():
        typer.echo(f"error: not a file: {path}", err=True)
        raise typer.Exit(1)
    remote, url_override = _parse_path_or_url(remote_path)
    on_progress, progress_finish = _make_progress_callback(path.name) if progress else (None, lambda: None)
    try:
        ok = _run(
            url_override or base_url,
            lambda c: c.create_file(path, remote, overwrite=not no_overwrite, on_progress=on_progress),
        )
    finally:
        if progress:
            progress_finish()
    _check(ok, "create", "Uploaded.")


# ------------------------- mkdir / mv / rm -------------------------


@app.command("mkdir", help="Create a directory (parents included)")
def mkdir_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.create_directory(path))
    _check(ok, "mkdirs", "Created.")


@app.command("mv", help="Rename or move a path")
def mv_cmd(
    source: Annotated[str, typer.Argument(help="Source path or URL")],
    destination: Annotated[str, typer.Argument(help="Destination path")],
    base_url: _base_url_option = None,
) -> None:
    source, url_override = _parse_path_or_url(source)
    ok = _run(url_override or base_url, lambda c: c.rename(source, c.session.resolve(destination)))
    _check(ok, "rename", "Moved.")


@app.command("rm", help="Delete a file or directory")
def rm_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    recursive: Annotated[bool, typer.Option("--recursive", "-r", help="Delete directory contents")] = False,
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.delete(path, recursive=recursive))
    _check(ok, "delete", "Deleted.")


# ------------------------- chmod / chown / chgrp / setrep / touch -------------------------


@app.command("chmod", help="Set permission (octal, e.g. 755)")
def chmod_cmd(
    permission: Annotated[str, typer.Argument(help="Octal permission")],
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.set_permission(path, permission))
    _check(ok, "setpermission", "OK.")


@app.command("chown", help="Set owner")
def chown_cmd(
    owner: Annotated[str, typer.Argument(help="New owner")],
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.set_owner(path, owner))
    _check(ok, "setowner", "OK.")


@app.command("chgrp", help="Set group")
def chgrp_cmd(
    group: Annotated[str, typer.Argument(help="New group")],
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.set_group(path, group))
    _check(ok, "setowner", "OK.")


@app.command("setrep", help="Set replication factor")
def setrep_cmd(
    replication: Annotated[int, typer.Argument(help="Replication factor")],
    path: Annotated[str, typer.Argument(help="Path or URL")],
    base_url: _base_url_option = None,
) -> None:
    path, url_override = _parse_path_or_url(path)
    ok = _run(url_override or base_url, lambda c: c.set_replication(path, replication))
    _check(ok, "setreplication", "OK.")


@app.command("touch", help="Set access and/or modification time (ms since epoch)")
def touch_cmd(
    path: Annotated[str, typer.Argument(help="Path or URL")],
    atime: Annotated[Optional[int], typer.Option("--atime", help="Access time in ms")] = None,
    mtime: Annotated[Optional[int], typer.Option("--mtime", help="Modification time in ms")] = None,
    base_url: _base_url_option = None,
) -> None:
    if atime is None and mtime is None:
        typer.echo("error: at least one of --atime / --mtime required", err=True)
        raise typer.Exit(1)
    path, url_override = _parse_path_or_url(path)

    async def action(client: WebHDFSClient) -> bool:
        ok = True
        if atime is not None:
            ok = await client.set_access_time(path, atime) and ok
        if mtime is not None:
            ok = await client.set_modification_time(path, mtime) and ok
        return ok

    ok = _run(url_override or base_url, action)
    _check(ok, "settimes", "OK.")


# ------------------------- main -------------------------


def main() -> None:
    app()


if __name__ == "__main__":
    main()
