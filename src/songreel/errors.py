"""Error taxonomy for building and exporting a project.

Every error carries an ErrorKind so callers (the export session, the CLI)
can classify failures without parsing messages:

  - BuildError: the timeline could not be built (empty project, unreadable
    song). Raised before any render backend is touched.
  - ExportError: the render/encode attempt failed, was cancelled, or its
    output sink is already in use.
  - SaveError: a secondary action after a successful export failed
    (copying into a media library). Never changes export state.
  - SessionStateError: an action was requested in a state that does not
    allow it (start while exporting, save before completion).

Model mutations with out-of-range indices are not errors at all; they are
silent no-ops (see models.Project).
"""

from enum import Enum


class ErrorKind(Enum):
    EMPTY_PROJECT = "empty_project"
    SONG_UNREADABLE = "song_unreadable"
    EMPTY_TIMELINE = "empty_timeline"
    COMPOSITION_FAILED = "composition_failed"
    EXPORT_FAILED = "export_failed"
    CANCELLED = "cancelled"
    SINK_BUSY = "sink_busy"
    SAVE_FAILED = "save_failed"
    INVALID_STATE = "invalid_state"


# User-facing descriptions, one per kind.
MESSAGES = {
    ErrorKind.EMPTY_PROJECT: "The project has no clips to export",
    ErrorKind.SONG_UNREADABLE: "The song could not be read",
    ErrorKind.EMPTY_TIMELINE: "None of the project's clips could be used",
    ErrorKind.COMPOSITION_FAILED: "Failed to create video composition",
    ErrorKind.EXPORT_FAILED: "Failed to export video",
    ErrorKind.CANCELLED: "Export was cancelled",
    ErrorKind.SINK_BUSY: "Another export is already writing to this file",
    ErrorKind.SAVE_FAILED: "Failed to save video to the media library",
    ErrorKind.INVALID_STATE: "That action is not available right now",
}


class SongreelError(Exception):
    """Base class for all classified songreel errors."""

    def __init__(self, kind: ErrorKind, detail: str | None = None):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{MESSAGES[kind]}: {detail}" if detail else MESSAGES[kind])

    @property
    def message(self) -> str:
        """Short user-facing description derived from the kind."""
        return MESSAGES[self.kind]


class BuildError(SongreelError):
    pass


class ExportError(SongreelError):
    pass


class SaveError(SongreelError):
    pass


class SessionStateError(SongreelError):
    def __init__(self, detail: str | None = None):
        super().__init__(ErrorKind.INVALID_STATE, detail)


class ManifestError(ValueError):
    """A project document is malformed."""
