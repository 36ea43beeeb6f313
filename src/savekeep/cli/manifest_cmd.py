"""Manifest commands: update, show, aliases."""

from __future__ import annotations

import click
import yaml
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ._common import console, fail, home_path, load_config, logger
from ..cache import CACHE_FILE_NAME, Cache
from ..errors import ManifestInvalid, SaveKeepError
from ..manifest import Manifest
from ..manifest.update import update_manifests_into_cache


def _load_merged(home) -> Manifest:
    config = load_config(home)
    path = Manifest.path_for(config.manifest.url, primary=True, home=home)

    if config.manifest.enable:
        if not path.exists():
            fail("No manifest downloaded yet. Run [cyan]savekeep manifest update[/] first.")
        try:
            manifest = Manifest.load(path)
        except (OSError, ManifestInvalid) as exc:
            fail(str(exc))
    else:
        manifest = Manifest()

    return manifest.with_extensions(config, home)


def register_manifest_commands(main: click.Group) -> None:
    """Register the manifest command group."""

    @main.group()
    def manifest():
        """Download and inspect the game manifest."""

    @manifest.command("update")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    @click.option("--force", is_flag=True, help="Check even if checked recently.")
    def manifest_update(home, force):
        """Download new versions of the primary and secondary manifests."""
        home = home_path(home)
        config = load_config(home)
        cache = Cache.load(home / CACHE_FILE_NAME)

        console.print("\n  Checking manifests...", end=" ")
        try:
            update_manifests_into_cache(config, cache, force=force, home=home)
        except SaveKeepError as exc:
            console.print("[red]failed[/]")
            logger.debug("Manifest update failed: %s", exc)
            fail(str(exc))

        console.print("[green]done[/]")
        for url, entry in sorted(cache.manifests.items()):
            updated = entry.updated.isoformat() if entry.updated else "never"
            console.print(f"    [dim]{url}[/] (updated: {updated})")
        console.print()

    @manifest.command("show")
    @click.argument("title")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    def manifest_show(title, home):
        """Show the merged rules for a game, following aliases."""
        merged = _load_merged(home_path(home))

        if title not in merged:
            fail(f"Unknown game: {title}")

        canonical = merged.aliases().get(title, title)
        game = merged[canonical]
        heading = title if canonical == title else f"{title} -> {canonical}"
        body = yaml.dump({canonical: game.to_dict()}, default_flow_style=False, sort_keys=False)
        console.print(Panel(Text(body.rstrip()), title=heading, border_style="cyan"))

    @manifest.command("aliases")
    @click.option("--home", default=None, type=click.Path(), help="App directory.")
    def manifest_aliases(home):
        """List every alias and the title it resolves to."""
        merged = _load_merged(home_path(home))
        aliases = merged.aliases()

        if not aliases:
            console.print("\n  [dim]No aliases.[/]\n")
            return

        table = Table(title="Aliases")
        table.add_column("Alias", style="cyan")
        table.add_column("Resolves to")
        for alias, canonical in sorted(aliases.items()):
            table.add_row(alias, canonical)
        console.print(table)
