"""User-defined file actions stored in the settings file.

Each row is three keys: ``fact<N>Name``, ``fact<N>Command`` and ``fact<N>Dir``
(N from 1). Only the first rows are offered in the menu.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from image_actions.logger import get_logger
from image_actions.path_utils import abs_dir_str
from image_actions.settings_manager import SettingsManager

if TYPE_CHECKING:
    from image_actions.actions import ActionRunner

_logger = get_logger("presets")

_WINDOWS = os.name == "nt"

FACTION_PRESETS_TOTAL = 9
FACTION_ROWS_TOTAL = 50

# Names or commands starting with "#" are kept but never shown in the menu
DEFAULT_ACTIONS: tuple[tuple[str, str], ...] = (
    ("View EXIF data (leafpad)", "exif %f | leafpad"),
    ("View filesystem data (xterm)", "xterm -hold -e ls -l %f"),
    ("Edit in Gimp", "gimp %f"),
    ("View in GQview", "gqview %f"),
    ("Print image", "kprinter %f"),
    ("Email image", "seamonkey -compose attachment=file://%f"),
    ("Send image to Firefox", "firefox %f"),
    ("Send image to OpenOffice", "soffice %f"),
    ("View image information", "xterm -hold -sb -rightbar -geometry 100x100 -e identify -verbose %f"),
    ("#Create temp directory", "mkdir ~/images"),
    ("#Remove temp directory", "rm -rf ~/images"),
    ("#GIF to PNG conversion (in situ)", "mogrify -format png *.gif"),
    ("#ICO to PNG conversion (temp directory)", "ls --file-type *.ico | xargs -I FILE convert FILE ~/images/FILE.png"),
    ("Convert image to ICO file", "mogrify -format ico %f"),
    (
        "Create thumbnails in temp directory",
        "ls --file-type * | xargs -I FILE convert FILE -thumbnail 120x120 -sharpen 1 -quality 95 ~/images/th_FILE.jpg",
    ),
    (
        "Create thumbnails (in situ)",
        "ls --file-type * | xargs -I FILE convert FILE -thumbnail 120x120 -sharpen 1 -quality 95 th_FILE.jpg",
    ),
    ("Rename *.jpeg to *.jpg", "rename .jpeg .jpg *.jpeg"),
    ("Remove spaces from filenames", "for file in *\" \"*; do mv \"$file\" `echo $file | sed -e 's/ /_/g'`; done"),
    ("Remove extra .jpg. from filename", "rename .jpg. . *.jpg.jpg"),
)


def _keys(item: int) -> tuple[str, str, str]:
    return f"fact{item}Name", f"fact{item}Command", f"fact{item}Dir"


@dataclass(frozen=True)
class FileAction:
    name: str = ""
    command: str = ""
    directory: str = ""

    @property
    def enabled(self) -> bool:
        """Whether the row belongs in the menu."""
        if not self.name or not self.command:
            return False
        return not (self.name.startswith("#") or self.command.startswith("#"))


class FileActionPresets:
    def __init__(self, settings: SettingsManager):
        self.settings = settings

    def init_defaults(self) -> None:
        """Fill in the stock actions for rows the user has never set.

        Windows has none of the stock programs, so nothing is added there.
        """
        if _WINDOWS:
            return
        missing: dict[str, str] = {}
        for item, (name, command) in enumerate(DEFAULT_ACTIONS, 1):
            for key, value in zip(_keys(item), (name, command, "")):
                if not self.settings.has(key):
                    missing[key] = value
        if missing:
            _logger.debug("adding %d default action keys", len(missing))
            self.settings.update(missing)

    def row(self, item: int) -> FileAction:
        """Row ``item``, counted from 1."""
        if not 1 <= item <= FACTION_ROWS_TOTAL:
            raise IndexError(f"file action {item} out of range")
        name_key, cmd_key, dir_key = _keys(item)
        return FileAction(
            str(self.settings.get(name_key, "") or ""),
            str(self.settings.get(cmd_key, "") or ""),
            str(self.settings.get(dir_key, "") or ""),
        )

    def rows(self) -> list[FileAction]:
        return [self.row(i) for i in range(1, FACTION_ROWS_TOTAL + 1)]

    def menu_entries(self) -> list[tuple[int, FileAction]]:
        """Enabled rows among the first FACTION_PRESETS_TOTAL, with their numbers."""
        entries = []
        for item in range(1, FACTION_PRESETS_TOTAL + 1):
            action = self.row(item)
            if action.enabled:
                entries.append((item, action))
        return entries

    def save_rows(self, rows: Sequence[FileAction]) -> None:
        """Replace the stored rows; missing trailing rows are cleared."""
        if len(rows) > FACTION_ROWS_TOTAL:
            raise ValueError(f"at most {FACTION_ROWS_TOTAL} file actions")
        values: dict[str, str] = {}
        for item in range(1, FACTION_ROWS_TOTAL + 1):
            action = rows[item - 1] if item <= len(rows) else FileAction()
            directory = abs_dir_str(action.directory) if action.directory else ""
            values.update(zip(_keys(item), (action.name, action.command, directory)))
        self.settings.update(values)

    def run(self, item: int, runner: ActionRunner) -> int:
        """Start row ``item`` in its working directory."""
        action = self.row(item)
        if not action.command:
            _logger.debug("file action %d has no command", item)
            return -1
        _logger.info("running file action %d: %s", item, action.name)
        return runner.spawn_expansion(action.command, action.directory)
