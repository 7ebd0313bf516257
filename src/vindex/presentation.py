"""Display attributes for indexing statuses.

Pure lookup, no state: the UI (and the CLI) render a status badge from the
``StatusDisplay`` returned here.
"""

from __future__ import annotations

from dataclasses import dataclass

from vindex.core.models import IndexingStatus


@dataclass(frozen=True)
class StatusDisplay:
    """How one status is shown.

    Attributes:
        label: Badge text
        icon: Icon identifier (lucide icon names)
        variant: Badge variant ("default", "secondary", "destructive")
        tone: Colour of the icon, usable as a rich style
        animated: Whether the icon spins
        is_pending: Whether the status is still expected to change
        description: Tooltip text when there is no error to show
    """

    label: str
    icon: str
    variant: str
    tone: str
    animated: bool
    is_pending: bool
    description: str


_DISPLAYS: dict[IndexingStatus, StatusDisplay] = {
    IndexingStatus.PENDING: StatusDisplay(
        label="Pending",
        icon="clock",
        variant="secondary",
        tone="grey50",
        animated=False,
        is_pending=True,
        description="Video will be uploaded for AI analysis",
    ),
    IndexingStatus.UPLOADING: StatusDisplay(
        label="Uploading",
        icon="upload",
        variant="secondary",
        tone="blue",
        animated=True,
        is_pending=True,
        description="Uploading video to Twelve Labs for processing",
    ),
    IndexingStatus.VALIDATING: StatusDisplay(
        label="Validating",
        icon="loader-2",
        variant="secondary",
        tone="blue",
        animated=True,
        is_pending=True,
        description="Validating video format and requirements",
    ),
    IndexingStatus.QUEUED: StatusDisplay(
        label="Queued",
        icon="clock",
        variant="secondary",
        tone="dark_orange",
        animated=False,
        is_pending=True,
        description="Video is queued for AI analysis",
    ),
    IndexingStatus.INDEXING: StatusDisplay(
        label="Analyzing",
        icon="zap",
        variant="secondary",
        tone="purple",
        animated=True,
        is_pending=True,
        description="AI is analyzing video content for search and understanding",
    ),
    IndexingStatus.READY: StatusDisplay(
        label="Ready",
        icon="check-circle",
        variant="default",
        tone="green",
        animated=False,
        is_pending=False,
        description="Video analysis complete. Ready for contextual search and insights.",
    ),
    IndexingStatus.FAILED: StatusDisplay(
        label="Failed",
        icon="x-circle",
        variant="destructive",
        tone="red",
        animated=False,
        is_pending=False,
        description="Video analysis failed. Try re-uploading or check video format.",
    ),
    # Unmapped provider values: still polling, so it stays pending.
    IndexingStatus.UNKNOWN: StatusDisplay(
        label="Unknown",
        icon="help-circle",
        variant="secondary",
        tone="grey50",
        animated=False,
        is_pending=True,
        description="Unknown status",
    ),
}


def present_status(status: IndexingStatus | str | None) -> StatusDisplay | None:
    """Display attributes for ``status``; ``None`` when there is nothing to show.

    Raw strings go through ``IndexingStatus.from_provider``, so an
    unrecognized value renders as "Unknown".
    """
    if status is None or status == "":
        return None
    if not isinstance(status, IndexingStatus):
        status = IndexingStatus.from_provider(status)
    return _DISPLAYS[status]


def tooltip(status: IndexingStatus | str | None, error: str | None = None) -> str | None:
    display = present_status(status)
    if display is None:
        return None
    if error:
        return f"{display.label}: {error}"
    return display.description
