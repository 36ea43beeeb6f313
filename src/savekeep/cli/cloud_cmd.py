"""Cloud commands: show, set, upload, download."""

from __future__ import annotations

import asyncio

import click
from rich.panel import Panel
from rich.progress import BarColumn, DownloadColumn, Progress as ProgressBar, TextColumn
from rich.table import Table

from ._common import console, fail, home_path, load_config, logger
from ..cloud.monitor import watch
from ..cloud.rclone import CloudChange, Finality, Progress, Rclone, ScanChange, SyncDirection
from ..cloud.remote import RemoteChoice, WebDavProvider, validate_cloud_config, validate_cloud_path
from ..config import CONFIG_FILE_NAME
from ..errors import SaveKeepError
from ..lang import Translator
from ..layout import escape_folder_name

_CHANGE_STYLES = {
    ScanChange.NEW: "[green]new[/]",
    ScanChange.DIFFERENT: "[yellow]changed[/]",
    ScanChange.REMOVED: "[red]removed[/]",
    ScanChange.SAME: "[dim]same[/]",
    ScanChange.UNKNOWN: "[dim]unknown[/]",
}


def _sync(home, direction: SyncDirection, preview: bool, games: tuple[str, ...]) -> None:
    home = home_path(home)
    config = load_config(home)
    try:
        remote = validate_cloud_config(config, config.cloud.path)
    except SaveKeepError as exc:
        fail(str(exc))

    local = config.backup_path.expanduser()
    if direction is SyncDirection.UPLOAD and not local.is_dir():
        fail(f"Backup folder does not exist: {local}")
    local.mkdir(parents=True, exist_ok=True)

    finality = Finality.PREVIEW if preview else Finality.FINAL
    rclone = Rclone(config.apps.rclone, remote)
    game_dirs = [escape_folder_name(game) for game in games]

    try:
        process = rclone.sync(local, config.cloud.path, direction, finality, game_dirs)
    except SaveKeepError as exc:
        fail(str(exc))

    changes: dict[str, ScanChange] = {}
    bar = ProgressBar(
        TextColumn("  [cyan]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        console=console,
        transient=True,
    )

    with bar:
        task = bar.add_task(direction.value, total=None)

        def on_events(events):
            for event in events:
                if isinstance(event, Progress):
                    bar.update(task, completed=event.current, total=event.max or None)
                elif isinstance(event, CloudChange):
                    changes[event.path] = event.change

        outcome = asyncio.run(watch(process, on_events))

    if outcome.cancelled:
        fail(f"{direction.value.capitalize()} cancelled.")
    if not outcome.succeeded:
        logger.debug("Sync failed: %s", outcome.error)
        fail(str(outcome.error))

    title = f"{direction.value.capitalize()} {'preview' if preview else 'complete'}"
    if not changes:
        console.print(f"\n  [green]{title}.[/] No changes.\n")
        return

    table = Table(title=title)
    table.add_column("Path", style="cyan")
    table.add_column("Change")
    for path, change in sorted(changes.items()):
        table.add_row(path, _CHANGE_STYLES[change])
    console.print(table)


def register_cloud_commands(main: click.Group) -> None:
    """Register the cloud command group."""

    @main.group()
    def cloud():
        """Mirror the backup folder to a cloud remote with rclone."""

    @cloud.command("show")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    def cloud_show(home):
        """Show the configured remote."""
        config = load_config(home_path(home))
        translator = Translator()
        remote = config.cloud.remote
        choice = RemoteChoice.from_remote(remote)

        lines = [f"Remote: [cyan]{choice.label(translator)}[/]"]
        if remote is not None:
            description = remote.description(translator)
            if description:
                lines.append(f"Details: {description}")
            lines.append(f"rclone name: {remote.name()}")
        lines.append(f"Path: {config.cloud.path}")
        lines.append(f"rclone: {config.apps.rclone.resolve() or '[red]not found[/]'}")
        console.print(Panel("\n".join(lines), title="Cloud", border_style="cyan"))

    @cloud.command("set")
    @click.argument("choice", type=click.Choice([c.value for c in RemoteChoice.all()]))
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    @click.option("--name", default=None, help="Existing rclone remote name (custom).")
    @click.option("--host", default=None, help="Server host (ftp, smb).")
    @click.option("--port", default=None, type=int, help="Server port (ftp, smb).")
    @click.option("--username", default=None, help="Login user (ftp, smb, webDav).")
    @click.option("--password", default=None, help="Login password (ftp, smb, webDav).")
    @click.option("--url", default=None, help="Server URL (webDav).")
    @click.option(
        "--provider",
        default=None,
        type=click.Choice([p.slug for p in WebDavProvider]),
        help="Server flavor (webDav).",
    )
    @click.option("--path", "cloud_path", default=None, help="Folder on the remote.")
    def cloud_set(choice, home, name, host, port, username, password, url, provider, cloud_path):
        """Select a remote and create it in rclone's config."""
        home = home_path(home)
        config = load_config(home)
        remote = RemoteChoice(choice).to_remote()

        if cloud_path is not None:
            try:
                validate_cloud_path(cloud_path)
            except SaveKeepError as exc:
                fail(str(exc))

        if remote is not None:
            settings = {
                "remote_name": name,
                "host": host,
                "port": port,
                "username": username,
                "password": password,
                "url": url,
                "provider": WebDavProvider.from_slug(provider) if provider else None,
            }
            remote = remote.model_copy(
                update={
                    key: value for key, value in settings.items()
                    if value is not None and key in type(remote).model_fields
                }
            )

            if remote.needs_configuration():
                if not config.apps.rclone.is_valid():
                    fail(f"Unable to find rclone: {config.apps.rclone.path}")
                console.print(f"\n  Configuring rclone remote [cyan]{remote.name()}[/]...", end=" ")
                try:
                    Rclone(config.apps.rclone, remote).configure_remote()
                except SaveKeepError as exc:
                    console.print("[red]failed[/]")
                    fail(str(exc))
                console.print("[green]done[/]")

        config.cloud.remote = remote
        if cloud_path is not None:
            config.cloud.path = cloud_path
        saved = config.save(home / CONFIG_FILE_NAME)
        console.print(f"  [dim]Saved: {saved}[/]\n")

    @cloud.command("upload")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    @click.option("--preview", is_flag=True, help="Show what would change without changing it.")
    @click.option("--game", "games", multiple=True, help="Only sync this game (repeatable).")
    def cloud_upload(home, preview, games):
        """Mirror the local backup folder to the remote."""
        _sync(home, SyncDirection.UPLOAD, preview, games)

    @cloud.command("download")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    @click.option("--preview", is_flag=True, help="Show what would change without changing it.")
    @click.option("--game", "games", multiple=True, help="Only sync this game (repeatable).")
    def cloud_download(home, preview, games):
        """Mirror the remote to the local backup folder."""
        _sync(home, SyncDirection.DOWNLOAD, preview, games)
