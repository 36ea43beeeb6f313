"""
Tests for the manifest document -- parsing, merging secondary manifests and
custom games, alias resolution, and the id lookup tables.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from savekeep.config import Config, CustomGame, ManifestConfig, RootConfig, SecondaryManifest
from savekeep.errors import ManifestInvalid
from savekeep.manifest import ALIAS_HOP_LIMIT, Manifest, merge
from savekeep.manifest.models import Game, InstallDirEntry, Store, Tag


def _manifest(data: dict) -> Manifest:
    return Manifest.load_from_string(yaml.dump(data))


class TestParsing:
    """Strict and lenient loading."""

    def test_load_simple(self):
        manifest = _manifest({"Celeste": {"files": {"<base>/Saves": {"tags": ["save"]}}}})
        assert "Celeste" in manifest
        assert len(manifest) == 1

    def test_empty_game_body(self):
        manifest = Manifest.load_from_string("Celeste:\n")
        assert manifest["Celeste"] == Game()

    def test_strict_rejects_non_mapping(self):
        with pytest.raises(ManifestInvalid):
            Manifest.load_from_string("- just\n- a list\n")

    def test_strict_rejects_bad_yaml(self):
        with pytest.raises(ManifestInvalid) as exc_info:
            Manifest.load_from_string("a: [unterminated", identifier="https://example.com/m.yaml")
        assert exc_info.value.identifier == "https://example.com/m.yaml"

    def test_strict_rejects_bad_game(self):
        with pytest.raises(ManifestInvalid):
            Manifest.load_from_string("Game:\n  steam:\n    id: not-a-number\n")

    def test_lenient_keeps_bad_game_as_empty(self):
        manifest = Manifest.load_from_string(
            "Good:\n  steam:\n    id: 1\nBad:\n  steam:\n    id: nope\n",
            strict=False,
        )
        assert manifest["Good"].steam.id == 1
        assert manifest["Bad"] == Game()

    def test_lenient_bad_document_is_empty(self):
        assert len(Manifest.load_from_string("[1, 2]", strict=False)) == 0

    def test_dump_sorted_and_reloadable(self):
        manifest = _manifest({"b": {"steam": {"id": 2}}, "a": {"alias": "b"}})
        dumped = manifest.dump()
        assert dumped.index("a:") < dumped.index("b:")
        assert Manifest.load_from_string(dumped) == manifest

    def test_file_names(self):
        assert Manifest.file_name_for("https://x/manifest.yaml", primary=True) == "manifest.yaml"
        assert (
            Manifest.file_name_for("https://example.com/extra.yaml", primary=False)
            == "manifest-https___example.com_extra.yaml"
        )


class TestSecondaryMerge:
    """incorporate_secondary_manifest behavior."""

    def test_new_game_gets_folder_hint(self):
        manifest = Manifest()
        secondary = _manifest({"Mod Game": {"files": {"./saves": {}}}})

        manifest.incorporate_secondary_manifest(Path("/games/ModGame/.ludusavi.yaml"), secondary)

        game = manifest["Mod Game"]
        assert "ModGame" in game.install_dir
        assert "<base>/saves" in game.files

    def test_existing_game_is_unioned(self):
        manifest = _manifest({
            "Celeste": {
                "files": {"<base>/a": {"tags": ["save"]}},
                "registry": {"HKEY_CURRENT_USER/Celeste": {}},
                "installDir": {"Celeste": {}},
                "steam": {"id": 504230},
                "id": {"steamExtra": [1]},
            }
        })
        secondary = _manifest({
            "Celeste": {
                "files": {"<base>/a": {"tags": ["config"]}, "<base>/b": {}},
                "installDir": {"CelesteAlt": {}},
                "steam": {"id": 999},
                "gog": {"id": 1234},
                "id": {"flatpak": "com.example.Celeste", "steamExtra": [2], "gogExtra": [3]},
            }
        })

        manifest.incorporate_secondary_manifest(Path("/lib/Celeste Folder/.ludusavi.yaml"), secondary)
        game = manifest["Celeste"]

        assert set(game.files) == {"<base>/a", "<base>/b"}
        assert game.files["<base>/a"].tags == {Tag.CONFIG}
        assert "HKEY_CURRENT_USER/Celeste" in game.registry
        assert set(game.install_dir) == {"Celeste", "CelesteAlt", "Celeste Folder"}
        assert game.steam.id == 504230
        assert game.gog.id == 1234
        assert game.id.flatpak == "com.example.Celeste"
        assert game.id.steam_extra == {1, 2}
        assert game.id.gog_extra == {3}

    def test_flatpak_kept_when_set(self):
        manifest = _manifest({"G": {"id": {"flatpak": "original"}}})
        secondary = _manifest({"G": {"id": {"flatpak": "replacement"}}})
        manifest.incorporate_secondary_manifest(Path("/x/G/.ludusavi.yaml"), secondary)
        assert manifest["G"].id.flatpak == "original"

    def test_secondary_not_mutated(self):
        manifest = Manifest()
        secondary = _manifest({"G": {"files": {"./save": {}}}})
        manifest.incorporate_secondary_manifest(Path("/x/G/.ludusavi.yaml"), secondary)
        assert "./save" in secondary["G"].files
        assert secondary["G"].install_dir == {}


class TestExtensions:
    """incorporate_extensions with config-driven sources."""

    def test_disabled_primary_is_cleared(self, tmp_path: Path):
        manifest = _manifest({"Celeste": {"steam": {"id": 1}}})
        config = Config(manifest=ManifestConfig(enable=False))
        manifest.incorporate_extensions(config, home=tmp_path)
        assert len(manifest) == 0

    def test_local_secondary_file(self, tmp_path: Path):
        path = tmp_path / "Extra" / "custom.yaml"
        path.parent.mkdir()
        path.write_text(yaml.dump({"Extra Game": {"files": {"<home>/x": {}}}}))
        config = Config(manifest=ManifestConfig(secondary=[SecondaryManifest(path=path)]))

        manifest = Manifest().with_extensions(config, home=tmp_path)

        assert "Extra" in manifest["Extra Game"].install_dir

    def test_missing_secondary_is_skipped(self, tmp_path: Path):
        config = Config(
            manifest=ManifestConfig(secondary=[SecondaryManifest(path=tmp_path / "missing.yaml")])
        )
        manifest = Manifest().with_extensions(config, home=tmp_path)
        assert len(manifest) == 0

    def test_disabled_secondary_is_ignored(self, tmp_path: Path):
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.dump({"Extra": {}}))
        config = Config(manifest=ManifestConfig(secondary=[SecondaryManifest(path=path, enable=False)]))
        assert "Extra" not in Manifest().with_extensions(config, home=tmp_path)

    def test_downloaded_secondary_url(self, tmp_path: Path):
        url = "https://example.com/extra.yaml"
        Manifest.path_for(url, primary=False, home=tmp_path).write_text(yaml.dump({"Remote Game": {}}))
        config = Config(manifest=ManifestConfig(secondary=[SecondaryManifest(url=url)]))
        assert "Remote Game" in Manifest().with_extensions(config, home=tmp_path)

    def test_steam_root_secondary(self, tmp_path: Path):
        game_dir = tmp_path / "steamapps" / "common" / "Hades"
        game_dir.mkdir(parents=True)
        (game_dir / ".ludusavi.yaml").write_text(yaml.dump({"Hades": {"files": {"./Saves": {}}}}))
        config = Config(roots=[RootConfig(path=tmp_path, store=Store.STEAM)])

        manifest = Manifest().with_extensions(config, home=tmp_path)

        assert set(manifest["Hades"].files) == {"<base>/Saves"}
        assert "Hades" in manifest["Hades"].install_dir

    def test_custom_game_replaces_rules(self, tmp_path: Path):
        manifest = _manifest({
            "Celeste": {
                "files": {"<base>/original": {}},
                "installDir": {"Celeste": {}},
                "steam": {"id": 504230},
                "id": {"lutris": "celeste"},
                "cloud": {"steam": True},
            }
        })
        config = Config(custom_games=[CustomGame(name="Celeste", files=["<home>/custom"])])

        manifest.incorporate_extensions(config, home=tmp_path)
        game = manifest["Celeste"]

        assert set(game.files) == {"<home>/custom"}
        assert game.files["<home>/custom"].unconditional
        assert game.install_dir == {"Celeste": InstallDirEntry()}
        assert game.steam.id == 504230
        assert game.id.lutris == "celeste"
        assert game.cloud.is_empty()

    def test_ignored_custom_game_is_skipped(self, tmp_path: Path):
        manifest = _manifest({"Celeste": {"steam": {"id": 1}}})
        config = Config(custom_games=[CustomGame(name="Celeste", ignore=True)])
        manifest.incorporate_extensions(config, home=tmp_path)
        assert manifest["Celeste"].steam.id == 1

    def test_custom_alias(self, tmp_path: Path):
        manifest = _manifest({"Celeste": {"steam": {"id": 1}}})
        config = Config(custom_games=[CustomGame(name="My Celeste", alias="Celeste")])
        manifest.incorporate_extensions(config, home=tmp_path)
        assert manifest.aliases() == {"My Celeste": "Celeste"}


class TestAliases:
    """Alias resolution."""

    @staticmethod
    def _chain(links: int) -> Manifest:
        games = {f"t{i}": Game(alias=f"t{i + 1}") for i in range(links)}
        games[f"t{links}"] = Game()
        return Manifest(games)

    def test_direct_alias(self):
        manifest = Manifest({"Alias": Game(alias="Real"), "Real": Game()})
        assert manifest.aliases() == {"Alias": "Real"}

    def test_chain_resolves_to_end(self):
        manifest = self._chain(3)
        assert manifest.aliases() == {"t0": "t3", "t1": "t3", "t2": "t3"}

    def test_chain_just_under_limit(self):
        manifest = self._chain(ALIAS_HOP_LIMIT - 1)
        assert manifest.aliases()["t0"] == f"t{ALIAS_HOP_LIMIT - 1}"

    def test_chain_at_limit_is_dropped(self):
        manifest = self._chain(ALIAS_HOP_LIMIT)
        aliases = manifest.aliases()
        assert "t0" not in aliases
        assert aliases["t1"] == f"t{ALIAS_HOP_LIMIT}"

    def test_cycle_is_dropped(self):
        manifest = Manifest({"a": Game(alias="b"), "b": Game(alias="a")})
        assert manifest.aliases() == {}

    def test_missing_target_is_dropped(self):
        manifest = Manifest({"a": Game(alias="gone")})
        assert manifest.aliases() == {}

    def test_custom_hop_limit(self):
        assert "t0" not in self._chain(3).aliases(max_hops=3)
        assert self._chain(3).aliases(max_hops=4)["t0"] == "t3"


class TestQueries:
    """Processable games and id lookups."""

    def test_processable(self):
        manifest = _manifest({
            "Files": {"files": {"a": {}}},
            "Steam Only": {"steam": {"id": 5}},
            "Lutris Only": {"id": {"lutris": "x"}},
            "Empty": {},
            "Cloud Only": {"cloud": {"steam": True}},
            "Alias": {"alias": "Files", "files": {"b": {}}},
        })
        assert set(manifest.processable_titles()) == {"Files", "Steam Only", "Lutris Only"}

    def test_primary_titles(self):
        manifest = _manifest({"A": {}, "B": {"alias": "A"}})
        assert manifest.primary_titles() == {"A"}

    def test_id_maps(self):
        manifest = _manifest({
            "A": {"steam": {"id": 10}, "gog": {"id": 20}, "id": {"steamExtra": [11], "gogExtra": [21]}},
            "B": {"id": {"lutris": "b-slug"}},
        })
        assert manifest.map_steam_ids_to_names() == {10: "A", 11: "A"}
        assert manifest.map_gog_ids_to_names() == {20: "A", 21: "A"}
        assert manifest.map_lutris_ids_to_names() == {"b-slug": "B"}


class TestMergeFunction:
    """merge() over explicit inputs."""

    def test_merge_leaves_inputs_alone(self):
        primary = _manifest({"Celeste": {"steam": {"id": 1}, "cloud": {"steam": True}}})
        secondary = _manifest({"Mod": {"files": {"./x": {}}}})

        merged = merge(
            primary,
            [(Path("/games/Mod/.ludusavi.yaml"), secondary)],
            [CustomGame(name="Celeste", files=["<home>/c"]), CustomGame(name="Skipped", ignore=True)],
        )

        assert set(merged.games) == {"Celeste", "Mod"}
        assert merged["Celeste"].cloud.is_empty()
        assert merged["Celeste"].steam.id == 1
        assert primary["Celeste"].cloud.steam
        assert "<base>/x" in merged["Mod"].files
