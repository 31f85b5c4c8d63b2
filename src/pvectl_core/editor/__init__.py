"""Editor session for interactive edits."""
from .session import EditorSession, error_block, resolve_editor, strip_error_block, system_editor

__all__ = ["EditorSession", "error_block", "resolve_editor", "strip_error_block", "system_editor"]
