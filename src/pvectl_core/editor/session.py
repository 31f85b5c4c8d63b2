"""Editor session: scoped temporary document round trip through an editor."""
import functools
import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from typing import Callable, Optional

from ..errors import DocumentValidationError, PipelineError
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

Launcher = Callable[[str], None]
Validator = Callable[[str], list[str]]

FALLBACK_EDITORS = ("vi", "nano")
ERROR_SEPARATOR = "# " + "-" * 47


def resolve_editor(editor: Optional[str] = None) -> list[str]:
    """Return the editor command as an argv list.

    Precedence: explicit editor, $EDITOR, $VISUAL, then the first fallback
    editor found on PATH.
    """
    command = editor or os.environ.get("EDITOR") or os.environ.get("VISUAL")
    if command:
        return shlex.split(command)

    for candidate in FALLBACK_EDITORS:
        if shutil.which(candidate):
            return [candidate]

    raise PipelineError("No editor found. Set $EDITOR or $VISUAL")


def system_editor(path: str, editor: Optional[str] = None) -> None:
    """Open path in the configured editor and block until it exits."""
    argv = resolve_editor(editor) + [path]
    logger.debug(f"Launching editor: {argv}")
    try:
        subprocess.run(argv, check=True)
    except subprocess.CalledProcessError as e:
        raise PipelineError(f"Editor exited with status {e.returncode}") from e


def error_block(errors: list[str]) -> str:
    """Comment block listing validation errors, placed above the document."""
    lines = [ERROR_SEPARATOR]
    lines.extend(f"# ERROR: {error}" for error in errors)
    lines.append("# Fix the errors above, or save an empty file to cancel.")
    lines.append(ERROR_SEPARATOR)
    return "\n".join(lines) + "\n"


def strip_error_block(text: str) -> str:
    """Remove a leading error block; text without a complete block is returned as is."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != ERROR_SEPARATOR:
        return text
    for index in range(1, len(lines)):
        if lines[index].strip() == ERROR_SEPARATOR:
            return "".join(lines[index + 1:])
    return text


class EditorSession:
    """Edit text in an external editor via a temporary file.

    The temporary file is removed on every exit path. A session returns None
    when the operator cancelled, either by saving the text unchanged or by
    emptying the file.

    When the validator rejects the text, the same file is reopened with the
    problems listed in a comment block at the top. Any earlier block is
    stripped before the text is validated again. With max_attempts set, the
    session stops reopening and raises DocumentValidationError after that
    many rejected rounds; None means keep reopening until valid or cancelled.
    """

    def __init__(
        self,
        launcher: Optional[Launcher] = None,
        validator: Optional[Validator] = None,
        suffix: str = ".yaml",
        editor: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.launcher = launcher or functools.partial(system_editor, editor=editor)
        self.validator = validator
        self.suffix = suffix
        self.max_attempts = max_attempts

    @timed("editor_session")
    def edit(self, initial_text: str) -> Optional[str]:
        """
        Run an edit round trip, reopening the editor on validation errors.

        Returns:
            Edited text without any error block, or None if the operator cancelled

        Raises:
            DocumentValidationError: If the text was still invalid after max_attempts rounds
        """
        fd, path = tempfile.mkstemp(prefix="pvectl-edit-", suffix=self.suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(initial_text)

            attempt = 0
            while True:
                attempt += 1
                self.launcher(path)

                with open(path, encoding="utf-8") as f:
                    edited = strip_error_block(f.read())

                if edited == initial_text:
                    logger.info("Edit cancelled: document unchanged")
                    return None
                if not edited.strip():
                    logger.info("Edit cancelled: document emptied")
                    return None
                if self.validator is None:
                    return edited

                errors = self.validator(edited)
                if not errors:
                    return edited
                if self.max_attempts is not None and attempt >= self.max_attempts:
                    raise DocumentValidationError(errors)

                logger.info(f"Document rejected with {len(errors)} error(s), reopening editor")
                with open(path, "w", encoding="utf-8") as f:
                    f.write(error_block(errors) + edited)
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
