"""Tests for status display attributes."""

import pytest

from vindex.core.models import IndexingStatus
from vindex.presentation import StatusDisplay, present_status, tooltip


class TestPresentStatus:
    """Test the status to display mapping."""

    def test_every_status_has_a_display(self):
        for status in IndexingStatus:
            assert isinstance(present_status(status), StatusDisplay)

    @pytest.mark.parametrize(
        "status,label,icon",
        [
            (IndexingStatus.PENDING, "Pending", "clock"),
            (IndexingStatus.UPLOADING, "Uploading", "upload"),
            (IndexingStatus.VALIDATING, "Validating", "loader-2"),
            (IndexingStatus.QUEUED, "Queued", "clock"),
            (IndexingStatus.INDEXING, "Analyzing", "zap"),
            (IndexingStatus.READY, "Ready", "check-circle"),
            (IndexingStatus.FAILED, "Failed", "x-circle"),
        ],
    )
    def test_labels_and_icons(self, status, label, icon):
        display = present_status(status)
        assert display.label == label
        assert display.icon == icon

    def test_animated_statuses(self):
        animated = {s for s in IndexingStatus if present_status(s).animated}
        assert animated == {
            IndexingStatus.UPLOADING,
            IndexingStatus.VALIDATING,
            IndexingStatus.INDEXING,
        }

    def test_only_terminal_statuses_are_settled(self):
        settled = {s for s in IndexingStatus if not present_status(s).is_pending}
        assert settled == {IndexingStatus.READY, IndexingStatus.FAILED}

    def test_variants(self):
        assert present_status(IndexingStatus.READY).variant == "default"
        assert present_status(IndexingStatus.FAILED).variant == "destructive"
        assert present_status(IndexingStatus.QUEUED).variant == "secondary"

    def test_absent_status(self):
        """Test there is nothing to render without a status."""
        assert present_status(None) is None
        assert present_status("") is None

    def test_raw_strings(self):
        assert present_status("ready").label == "Ready"
        assert present_status("Indexing").label == "Analyzing"

    def test_unrecognized_string_renders_unknown(self):
        display = present_status("transcoding")
        assert display.label == "Unknown"
        assert display.description == "Unknown status"
        assert display.is_pending


class TestTooltip:
    """Test tooltip text."""

    def test_description_without_error(self):
        assert tooltip(IndexingStatus.QUEUED) == "Video is queued for AI analysis"

    def test_error_takes_precedence(self):
        text = tooltip(IndexingStatus.FAILED, "Video is too short. Minimum 10 seconds required.")
        assert text == "Failed: Video is too short. Minimum 10 seconds required."

    def test_no_status(self):
        assert tooltip(None, "ignored") is None
