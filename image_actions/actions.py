"""Run file actions and built-in actions, reporting failures to the user.

This is the only layer that turns ActionError into a notification; everything
below it raises or returns a status.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from enum import IntEnum

from image_actions.document import DocumentState, blank_document
from image_actions.encoder import ArtifactProducer, VipsImageSaver
from image_actions.errors import ActionError, LaunchError, NonZeroExitError
from image_actions.interpolate import ActionSettings, interpolate_action, interpolate_line
from image_actions.launcher import run_shell, shell_argv, spawn_process
from image_actions.logger import get_logger
from image_actions.notify import Notifier, default_notifier
from image_actions.settings_manager import SettingsManager
from image_actions.tempfiles import TempFileManager

_logger = get_logger("actions")

_WINDOWS = os.name == "nt"

# Windows shell does not know "&", nor needs it to run detached
CMD_DETACH = "" if _WINDOWS else " &"

# global colourmaps, suppress warning, high optimizations, background removal
# method, infinite loops, ensure result works with Java & MS IE
GIFSICLE_CREATE = "gifsicle --colors 256 -w -O2 -D 2 -l0 --careful -d ((delay)) ((srcmask)) -o ((dest))"
GIFSICLE_PLAY = "gifview -a ((src)) &"
# ImageMagick is many times slower than gifsicle
MAGICK_CREATE = "convert ((srcmask)) -layers optimize -set delay ((delay)) -loop 0 ((dest))"
MAGICK_PLAY = "animate ((src)) &"

HANDBOOK_LOCATIONS = ("/usr/doc/image_actions/index.html", "/usr/share/doc/image_actions/index.html")
HANDBOOK_LOCATION_WIN = os.path.join("..", "docs", "index.html")
FALLBACK_BROWSER = "firefox"

MSG_NO_DOCS = (
    "I am unable to find the documentation.  Either you need to download the Handbook "
    "and install it, or you need to set the correct location in the Preferences window."
)
MSG_NO_BROWSER = (
    "There was a problem running the HTML browser.  "
    "You need to set the correct program name in the Preferences window."
)


class DefaultAction(IntEnum):
    GIF_CREATE = 0
    GIF_PLAY = 1
    GIF_EDIT = 2
    SVG_CONVERT = 3
    WEBP_PLAY = 4


def default_action_template(action: DefaultAction, backend: str = "gifsicle") -> str | None:
    """Command template of a built-in action, or None where it is unavailable."""
    magick = backend == "imagemagick"
    if action == DefaultAction.GIF_CREATE:
        return MAGICK_CREATE if magick else GIFSICLE_CREATE
    if action == DefaultAction.GIF_PLAY:
        # gifview and animate are both X-only
        if _WINDOWS:
            return None
        return MAGICK_PLAY if magick else GIFSICLE_PLAY
    if action == DefaultAction.GIF_EDIT:
        # Frames are written next to the source as name.000, name.001...
        return "gimp ((src)).??? ((src)).????" + CMD_DETACH
    if action == DefaultAction.SVG_CONVERT:
        return "rsvg-convert ((w)) ((h)) -o ((dest)) ((src))"
    if action == DefaultAction.WEBP_PLAY:
        return "vwebp ((src))" + CMD_DETACH
    return None


class ActionRunner:
    """Expands templates and launches them for the application.

    ``document_provider`` returns the current document snapshot, or None when
    no image is open.
    """

    def __init__(
        self,
        temp_files: TempFileManager,
        document_provider: Callable[[], DocumentState | None],
        producer: ArtifactProducer | None = None,
        notifier: Notifier | None = None,
        settings: SettingsManager | None = None,
    ) -> None:
        self.temp_files = temp_files
        self._document_provider = document_provider
        self.producer = producer or VipsImageSaver()
        self.notifier = notifier or default_notifier()
        self.settings = settings

    def _document(self) -> DocumentState:
        return self._document_provider() or blank_document()

    def _setting(self, key: str) -> str:
        if self.settings is None:
            return ""
        return str(self.settings.get(key) or "")

    def report(self, err: ActionError) -> None:
        _logger.warning("action failed: %s", err.to_dict())
        self.notifier.notify("Error", str(err))

    def expand(self, template: str, command: bool = True) -> str:
        """Expand a user template; raises ActionError on failure."""
        return interpolate_line(template, self._document(), self.temp_files, self.producer, command=command)

    def spawn_expansion(self, template: str, directory: str = "") -> int:
        """Expand ``template`` and start it through the shell.

        Returns 0 when the shell started. That says nothing about the
        program the shell runs.
        """
        try:
            line = self.expand(template)
        except ActionError as e:
            self.report(e)
            return -1
        res = spawn_process(shell_argv(line), directory)
        if res:
            self.report(LaunchError(f"Error {res} reported when trying to run {line}", res, line))
        return res

    def run_default_action(
        self, action: DefaultAction, src: str, dest: str = "", delay: int = 0, width: int = 0, height: int = 0
    ) -> int:
        return self.run_default_action_x(action, ActionSettings(src, dest, delay, width, height))

    def run_default_action_x(self, action: DefaultAction, settings: ActionSettings) -> int:
        """Run a built-in action and wait for it; returns its exit code (-1: unavailable)."""
        backend = self.settings.anim_backend if self.settings is not None else "gifsicle"
        template = default_action_template(action, backend)
        if template is None:
            _logger.debug("default action %s unavailable", action.name)
            return -1
        command = interpolate_action(template, settings)
        res = run_shell(command)
        if res:
            self.report(NonZeroExitError(f"Error {res} reported when trying to run {command}", res, command))
        return res

    def _handbook_path(self, docs: str | None) -> str:
        docs = docs or self._setting("handbook_location")
        if docs:
            return docs
        if _WINDOWS:
            # Default path relative to the install dir
            return os.path.join(os.path.dirname(sys.executable), HANDBOOK_LOCATION_WIN)
        for loc in HANDBOOK_LOCATIONS:
            if os.path.exists(loc):
                return loc
        return HANDBOOK_LOCATIONS[-1]

    def show_html(self, browser: str | None = None, docs: str | None = None) -> int:
        """Open the handbook in ``browser`` or the system's default viewer."""
        docs = self._handbook_path(docs)
        if not os.path.exists(docs):
            self.notifier.notify("Error", MSG_NO_DOCS)
            return -1

        if browser is None:
            browser = self._setting("html_browser")
        if _WINDOWS:
            res = self._show_html_windows(browser, docs)
        else:
            if not browser:
                # Try the desktop's default viewer first
                if spawn_process(["xdg-open", docs]) == 0:
                    return 0
                browser = os.environ.get("BROWSER") or FALLBACK_BROWSER
            res = spawn_process([browser, docs])
        if res:
            self.notifier.notify("Error", MSG_NO_BROWSER)
        return res

    def _show_html_windows(self, browser: str, docs: str) -> int:
        try:
            if browser:
                os.startfile(browser, "open", f'"{docs}"')  # type: ignore[attr-defined]
            else:
                os.startfile(docs, "open")  # type: ignore[attr-defined]
        except OSError as e:
            _logger.error("ShellExecute failed: %s", e)
            return -1
        return 0
