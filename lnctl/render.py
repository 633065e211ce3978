"""Render a DOT description to an image and open it.

Rendering shells out twice: once to the layout compiler (``dot``) and once to
a desktop viewer. Both go through a :class:`CommandRunner` so callers can swap
in a fake that records invocations.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, Sequence

from .config import DEFAULT_OUTPUT_PATH, RenderConfig

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """Base class for rendering pipeline failures."""


class RenderFailedError(RenderError):
    """Raised when the layout compiler exits with a non-zero status."""

    def __init__(self, returncode: int, stderr: str, source: str) -> None:
        super().__init__(
            f"error rendering graph (exit {returncode}): {stderr.strip()}\ndot: {source}"
        )
        self.returncode = returncode
        self.stderr = stderr
        self.source = source


class ViewerFailedError(RenderError):
    """Raised when the image viewer exits with a non-zero status."""

    def __init__(self, returncode: int, stderr: str, image_path: Path) -> None:
        super().__init__(
            f"error opening rendered graph image {image_path} (exit {returncode}): {stderr.strip()}"
        )
        self.returncode = returncode
        self.stderr = stderr
        self.image_path = image_path


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""


class CommandRunner(Protocol):
    """Runs an external command to completion and captures its output."""

    def run(self, args: Sequence[str]) -> CommandResult:
        ...


class SubprocessRunner:
    """Runs commands with :func:`subprocess.run`."""

    def run(self, args: Sequence[str]) -> CommandResult:
        logger.debug("Running %s", " ".join(args))
        try:
            completed = subprocess.run(list(args), capture_output=True, text=True)
        except FileNotFoundError as exc:
            return CommandResult(returncode=127, stderr=f"{args[0]}: command not found ({exc})")
        except OSError as exc:
            return CommandResult(returncode=126, stderr=f"{args[0]}: cannot execute ({exc})")
        return CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


def _source_of(description: Any) -> str:
    # graphviz objects expose their DOT text as ``source``.
    return description if isinstance(description, str) else description.source


def render_graph(
    description: Any,
    *,
    output_path: str | Path = DEFAULT_OUTPUT_PATH,
    runner: CommandRunner | None = None,
    layout_command: str = "dot",
    viewer_command: str | None = RenderConfig.viewer_command,
    image_format: str = "svg",
) -> Path:
    """Compile ``description`` into ``output_path`` and open it in a viewer.

    The DOT text is staged in a temporary file that is removed whatever the
    outcome. ``output_path`` is overwritten on every call. Pass
    ``viewer_command=None`` to skip the viewer.
    """

    runner = runner or SubprocessRunner()
    output_path = Path(output_path)
    source = _source_of(description)

    fd, dot_path = tempfile.mkstemp(prefix="lnctl-", suffix=".dot")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(source)
            handle.flush()
            os.fsync(handle.fileno())

        draw = runner.run([layout_command, f"-T{image_format}", f"-o{output_path}", dot_path])
        if draw.returncode != 0:
            logger.error("%s failed: %s", layout_command, draw.stderr.strip())
            raise RenderFailedError(draw.returncode, draw.stderr, source)
    finally:
        try:
            os.remove(dot_path)
        except FileNotFoundError:
            pass

    logger.info("Rendered graph to %s", output_path)
    if viewer_command is None:
        return output_path

    view = runner.run([viewer_command, str(output_path)])
    if view.returncode != 0:
        logger.error("%s failed: %s", viewer_command, view.stderr.strip())
        raise ViewerFailedError(view.returncode, view.stderr, output_path)
    return output_path
