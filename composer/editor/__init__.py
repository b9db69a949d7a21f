"""Interactive layout editing state machine."""

from .controller import (
    LayoutEditorController, EditorBusyError, EditorState,
    Idle, Dragging, Resizing, CORNERS,
)

__all__ = [
    'LayoutEditorController', 'EditorBusyError', 'EditorState',
    'Idle', 'Dragging', 'Resizing', 'CORNERS',
]
