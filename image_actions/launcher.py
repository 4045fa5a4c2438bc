"""Start external programs for file actions.

``spawn_process`` reports only whether the program *started*:

- POSIX: a supervisor child forks the real program and waits on a
  close-on-exec pipe. EOF means exec succeeded; otherwise the errno arrives
  through the pipe. The supervisor exits with the number of bytes it read
  and never waits for the program, which is left running unowned (never
  reaped here). A non-zero result can also mean the supervisor itself failed;
  it does not tell "never started" apart from every other failure.
- Windows: the argv is joined into one command line and handed to
  CreateProcess; the program is not waited for.

``run_shell`` is the blocking counterpart used by the built-in actions.
"""

from __future__ import annotations

import errno
import os
import struct
import subprocess
from collections.abc import Sequence

from image_actions.logger import get_logger

_logger = get_logger("launcher")

STATUS_STARTED = 0
STATUS_FORK_FAILED = 1
STATUS_SUPERVISOR_FAILED = 255

_ERRNO = struct.Struct("i")

# Windows process creation flags (winbase.h)
CREATE_DEFAULT_ERROR_MODE = 0x04000000
NORMAL_PRIORITY_CLASS = 0x00000020


def shell_argv(command: str) -> list[str]:
    """Argument vector running ``command`` through the platform shell."""
    if os.name == "nt":
        return [os.environ.get("COMSPEC") or "cmd.exe", "/C", command]
    return ["sh", "-c", command]


def _exec_program(argv: Sequence[str], directory: str | None, rfd: int, wfd: int) -> None:
    """Grandchild: never returns."""
    err = errno.EINVAL
    try:
        if directory:
            os.chdir(directory)
        os.close(rfd)
        os.set_inheritable(wfd, False)  # close-on-exec
        os.execvp(argv[0], list(argv))
    except OSError as e:
        err = e.errno or errno.EINVAL
    finally:
        # Report the failure to the supervisor
        try:
            os.write(wfd, _ERRNO.pack(err))
        finally:
            os._exit(1)


def _supervise(argv: Sequence[str], directory: str | None) -> None:
    """Supervisor child: never returns."""
    status = STATUS_SUPERVISOR_FAILED
    try:
        rfd, wfd = os.pipe()
        grandchild = os.fork()
        if grandchild == 0:
            _exec_program(argv, directory, rfd, wfd)
        # Close the write end before reading, or EOF never comes
        os.close(wfd)
        data = b""
        while len(data) < _ERRNO.size:
            chunk = os.read(rfd, _ERRNO.size - len(data))
            if not chunk:
                break
            data += chunk
        os.close(rfd)
        status = len(data)
    finally:
        os._exit(status)


def _spawn_posix(argv: Sequence[str], directory: str | None) -> int:
    try:
        child = os.fork()
    except OSError as e:
        _logger.error("fork failed: %s", e)
        return STATUS_FORK_FAILED
    if child == 0:
        _supervise(argv, directory)
    _, status = os.waitpid(child, 0)
    if os.WIFEXITED(status):
        return os.WEXITSTATUS(status)
    return STATUS_SUPERVISOR_FAILED


def _spawn_windows(argv: Sequence[str], directory: str | None) -> int:
    cmdline = " ".join(argv)
    try:
        # Popen hands the str to CreateProcessW; no codepage conversion needed
        proc = subprocess.Popen(
            cmdline,
            cwd=directory,
            creationflags=CREATE_DEFAULT_ERROR_MODE | NORMAL_PRIORITY_CLASS,
        )
    except OSError as e:
        _logger.error("process creation failed: %s (%s)", cmdline, e)
        return STATUS_FORK_FAILED
    _logger.debug("started pid %d: %s", proc.pid, cmdline)
    # Never waited on; mark it done so dropping the handle stays quiet
    proc.returncode = 0
    return STATUS_STARTED


def spawn_process(argv: Sequence[str], directory: str | None = None) -> int:
    """Start ``argv`` detached, optionally in ``directory``.

    Returns 0 when the program was started, non-zero otherwise. An empty
    directory means the current one.
    """
    if not argv:
        raise ValueError("empty argv")
    directory = directory or None
    if os.name == "nt":
        res = _spawn_windows(argv, directory)
    else:
        res = _spawn_posix(argv, directory)
    if res:
        _logger.warning("launch of %s reported status %d", argv[0], res)
    else:
        _logger.debug("launched: %s", argv[0])
    return res


def run_shell(command: str) -> int:
    """Run ``command`` through the shell and wait; returns its exit code.

    A command killed by a signal returns the negative signal number.
    """
    _logger.debug("run: %s", command)
    try:
        return subprocess.run(command, shell=True, check=False).returncode
    except OSError as e:
        _logger.error("shell failed to start: %s (%s)", command, e)
        return -1
