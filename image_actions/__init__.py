"""Command templates and external program launching for image actions."""

from image_actions.actions import ActionRunner, DefaultAction
from image_actions.document import DocumentState
from image_actions.errors import (
    ActionError,
    ArtifactWriteError,
    LaunchError,
    NameExhaustedError,
    NonZeroExitError,
    NoTempDirError,
)
from image_actions.escaper import escape_filename
from image_actions.interpolate import ActionSettings, interpolate_action, interpolate_line
from image_actions.launcher import run_shell, spawn_process
from image_actions.presets import FileAction, FileActionPresets
from image_actions.tempfiles import TempFileManager

__all__ = [
    "ActionError",
    "ActionRunner",
    "ActionSettings",
    "ArtifactWriteError",
    "DefaultAction",
    "DocumentState",
    "FileAction",
    "FileActionPresets",
    "LaunchError",
    "NameExhaustedError",
    "NoTempDirError",
    "NonZeroExitError",
    "TempFileManager",
    "escape_filename",
    "interpolate_action",
    "interpolate_line",
    "run_shell",
    "spawn_process",
]
