"""
Manifest document -- the authoritative title -> rules mapping.

The primary manifest is extended with secondary manifests (shipped by
users, mods or inside game folders) and with the user's custom games.
Alias records point one title at another and are resolved here too.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Optional

import yaml
from pydantic import ValidationError

from .. import app_dir
from ..errors import ManifestInvalid
from ..layout import escape_folder_name
from .models import CloudMetadata, FileEntry, Game, GogMetadata, IdMetadata, InstallDirEntry, RegistryEntry, SteamMetadata

if TYPE_CHECKING:
    from ..config import Config, CustomGame

logger = logging.getLogger("savekeep.manifest")

ALIAS_HOP_LIMIT = 100


class Manifest:
    """Mapping of game title to ``Game`` rules."""

    FILE_NAME = "manifest.yaml"

    def __init__(self, games: Optional[dict[str, Game]] = None) -> None:
        self.games: dict[str, Game] = games if games is not None else {}

    def __contains__(self, title: str) -> bool:
        return title in self.games

    def __getitem__(self, title: str) -> Game:
        return self.games[title]

    def __len__(self) -> int:
        return len(self.games)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Manifest) and self.games == other.games

    def __repr__(self) -> str:
        return f"Manifest({len(self.games)} games)"

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    @classmethod
    def load_from_string(
        cls,
        content: str,
        *,
        strict: bool = True,
        identifier: Optional[str] = None,
    ) -> "Manifest":
        """Parse a YAML manifest.

        Args:
            content: YAML text.
            strict: Raise on any invalid game. When False, an invalid game
                becomes an empty rule set and an invalid document becomes
                an empty manifest.
            identifier: Source label used in errors and log messages.

        Raises:
            ManifestInvalid: The document is invalid and ``strict`` is set.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            return cls._reject(str(exc), strict, identifier)

        if not isinstance(data, dict):
            return cls._reject("expected a mapping of game titles", strict, identifier)

        games: dict[str, Game] = {}
        for title, raw in data.items():
            try:
                games[str(title)] = Game.model_validate(raw if raw is not None else {})
            except ValidationError as exc:
                if strict:
                    raise ManifestInvalid(f"{title}: {exc}", identifier) from exc
                logger.warning(
                    "Ignoring invalid rules for %s in %s: %s",
                    title, identifier or "manifest", exc,
                )
                games[str(title)] = Game()
        return cls(games)

    @classmethod
    def _reject(cls, why: str, strict: bool, identifier: Optional[str]) -> "Manifest":
        if strict:
            raise ManifestInvalid(why, identifier)
        logger.warning("Ignoring invalid manifest %s: %s", identifier or "", why)
        return cls()

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        *,
        strict: bool = True,
        identifier: Optional[str] = None,
    ) -> "Manifest":
        """Read a manifest file. Defaults to the primary manifest in the app dir."""
        path = path or cls.path_for("", primary=True)
        return cls.load_from_string(
            path.read_text(encoding="utf-8"),
            strict=strict,
            identifier=identifier,
        )

    @classmethod
    def file_name_for(cls, url: str, primary: bool) -> str:
        if primary:
            return cls.FILE_NAME
        stem = url[: -len(".yaml")] if url.endswith(".yaml") else url
        return f"manifest-{escape_folder_name(stem)}.yaml"

    @classmethod
    def path_for(cls, url: str, primary: bool, home: Optional[Path] = None) -> Path:
        """Where the downloaded copy of a manifest lives."""
        return (home or app_dir()) / cls.file_name_for(url, primary)

    def to_dict(self) -> dict[str, Any]:
        return {title: self.games[title].to_dict() for title in sorted(self.games)}

    def dump(self) -> str:
        """Serialize as YAML in title order, omitting empty fields."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dump(), encoding="utf-8")

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def incorporate_extensions(self, config: "Config", home: Optional[Path] = None) -> None:
        """Apply secondary manifests and custom games from the config."""
        if not config.manifest.enable:
            self.games.clear()

        for path, secondary in config.manifest.load_secondary_manifests(home):
            self.incorporate_secondary_manifest(path, secondary)

        for root in config.roots:
            for path, secondary in root.find_secondary_manifests():
                self.incorporate_secondary_manifest(path, secondary)

        for custom_game in config.custom_games:
            if custom_game.ignore:
                continue
            self.add_custom_game(custom_game)

    def with_extensions(self, config: "Config", home: Optional[Path] = None) -> "Manifest":
        self.incorporate_extensions(config, home)
        return self

    def add_custom_game(self, custom: "CustomGame") -> None:
        """Replace or add a game with the user's own rules.

        Ids and install folders carry over from an existing entry. Cloud
        flags do not: someone who skips games with store cloud sync still
        wants their customized versions of those games backed up.
        """
        existing = self.games.get(custom.name)

        self.games[custom.name] = Game(
            alias=custom.alias,
            files={path: FileEntry() for path in custom.files},
            install_dir=dict(existing.install_dir) if existing else {},
            registry={key: RegistryEntry() for key in custom.registry},
            steam=existing.steam.model_copy() if existing else SteamMetadata(),
            gog=existing.gog.model_copy() if existing else GogMetadata(),
            id=existing.id.model_copy(deep=True) if existing else IdMetadata(),
            cloud=CloudMetadata(),
        )

    def incorporate_secondary_manifest(self, path: Path, secondary: "Manifest") -> None:
        """Merge one secondary manifest found at ``path`` into this one."""
        logger.debug("incorporating secondary manifest: %s", path)
        folder = Path(path).parent.name

        for name, game in secondary.games.items():
            game = game.model_copy(deep=True)
            game.normalize_relative_paths()

            standard = self.games.get(name)
            if standard is None:
                logger.debug("adding game from secondary manifest: %s", name)
                if folder:
                    game.install_dir[folder] = InstallDirEntry()
                self.games[name] = game
                continue

            logger.debug("overriding game from secondary manifest: %s", name)
            standard.files.update(game.files)
            standard.registry.update(game.registry)

            if folder:
                standard.install_dir[folder] = InstallDirEntry()
            standard.install_dir.update(game.install_dir)

            if standard.steam.is_empty():
                standard.steam = game.steam
            if standard.gog.is_empty():
                standard.gog = game.gog

            if standard.id.flatpak is None:
                standard.id.flatpak = game.id.flatpak
            standard.id.gog_extra |= game.id.gog_extra
            standard.id.steam_extra |= game.id.steam_extra

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def processable_games(self) -> Iterator[tuple[str, Game]]:
        """Games that can be scanned directly: not aliases, not empty stubs."""
        for title, game in self.games.items():
            if game.alias is not None:
                continue
            if (
                game.files
                or game.registry
                or not game.steam.is_empty()
                or not game.gog.is_empty()
                or not game.id.is_empty()
            ):
                yield title, game

    def processable_titles(self) -> Iterator[str]:
        for title, _ in self.processable_games():
            yield title

    def primary_titles(self) -> set[str]:
        return {title for title, game in self.games.items() if game.alias is None}

    def aliases(self, max_hops: int = ALIAS_HOP_LIMIT) -> dict[str, str]:
        """Map each alias title to the non-alias title its chain ends at.

        Chains longer than ``max_hops`` (including cycles) or that point
        at a missing title are left out.
        """
        resolved: dict[str, str] = {}
        for title in self.games:
            lookup = title
            for hops in range(max_hops):
                game = self.games.get(lookup)
                if game is None:
                    break
                if game.alias is None:
                    if hops > 0:
                        resolved[title] = lookup
                    break
                lookup = game.alias
        return resolved

    def map_steam_ids_to_names(self) -> dict[int, str]:
        out: dict[int, str] = {}
        for title, game in self.games.items():
            if game.steam.id is not None:
                out[game.steam.id] = title
            for extra in game.id.steam_extra:
                out[extra] = title
        return out

    def map_gog_ids_to_names(self) -> dict[int, str]:
        out: dict[int, str] = {}
        for title, game in self.games.items():
            if game.gog.id is not None:
                out[game.gog.id] = title
            for extra in game.id.gog_extra:
                out[extra] = title
        return out

    def map_lutris_ids_to_names(self) -> dict[str, str]:
        return {
            game.id.lutris: title
            for title, game in self.games.items()
            if game.id.lutris is not None
        }


def merge(
    primary: Manifest,
    secondaries: Iterable[tuple[Path, Manifest]] = (),
    custom_games: Iterable["CustomGame"] = (),
) -> Manifest:
    """Combine a primary manifest with secondary manifests and custom games.

    The inputs are left untouched; secondaries apply in order, then custom
    games that are not ignored.
    """
    merged = Manifest({title: game.model_copy(deep=True) for title, game in primary.games.items()})
    for path, secondary in secondaries:
        merged.incorporate_secondary_manifest(path, secondary)
    for custom_game in custom_games:
        if not custom_game.ignore:
            merged.add_custom_game(custom_game)
    return merged
