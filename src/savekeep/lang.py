"""Display labels, passed explicitly to whatever needs to render them."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .manifest.models import Store


class Translator:
    """English labels. Subclass and override to localize."""

    def none_label(self) -> str:
        return "None"

    def custom_label(self) -> str:
        return "Custom"

    def store(self, store: "Store") -> str:
        from .manifest.models import Store

        return {
            Store.EA: "EA App",
            Store.EPIC: "Epic",
            Store.GOG: "GOG",
            Store.GOG_GALAXY: "GOG Galaxy",
            Store.HEROIC: "Heroic",
            Store.LEGENDARY: "Legendary",
            Store.LUTRIS: "Lutris",
            Store.MICROSOFT: "Microsoft",
            Store.ORIGIN: "Origin",
            Store.PRIME: "Prime Gaming",
            Store.STEAM: "Steam",
            Store.UPLAY: "Uplay",
            Store.OTHER_HOME: "Home folder",
            Store.OTHER_WINE: "Wine prefix",
            Store.OTHER_WINDOWS: "Windows drive",
            Store.OTHER_LINUX: "Linux drive",
            Store.OTHER_MAC: "Mac drive",
            Store.OTHER: "Other",
        }[store]
