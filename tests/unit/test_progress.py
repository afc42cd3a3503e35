from __future__ import annotations

from unittest.mock import patch

from fleetgrid.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_with_tty_drives_tqdm():
    with patch("fleetgrid.services.progress.is_tty_enabled", return_value=True), patch(
        "fleetgrid.services.progress.tqdm"
    ) as mock_tqdm:
        with ProgressTracker(10, description="Importing rows") as tracker:
            tracker.start_sheet("PHP")
            tracker.advance(4)
            tracker.set_postfix(created=4, skipped=0)

        mock_tqdm.assert_called_once_with(
            total=10,
            desc="Importing rows",
            unit="row",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )
        bar = mock_tqdm.return_value
        bar.set_description.assert_called_once_with("Importing rows (PHP)")
        bar.update.assert_called_once_with(4)
        bar.set_postfix.assert_called_once_with(created=4, skipped=0)
        bar.close.assert_called_once()
        assert tracker.done == 4
        assert tracker.pbar is None


def test_tracker_without_tty_only_counts():
    with patch("fleetgrid.services.progress.is_tty_enabled", return_value=False), patch(
        "fleetgrid.services.progress.tqdm"
    ) as mock_tqdm:
        tracker = ProgressTracker(3)
        tracker.advance(3)
        tracker.close()
        mock_tqdm.assert_not_called()
        assert tracker.done == 3
