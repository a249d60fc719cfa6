"""Tests for process liveness probing."""

from unittest.mock import Mock, patch

import psutil

from ledgerctl.core.process import is_process_alive


class TestIsProcessAlive:
    """Test is_process_alive function."""

    def test_non_positive_pid_is_dead(self) -> None:
        """Test PIDs that cannot belong to a real process."""
        assert is_process_alive(0) is False
        assert is_process_alive(-5) is False

    @patch("ledgerctl.core.process.os.kill", side_effect=ProcessLookupError)
    def test_missing_process_is_dead(self, mock_kill) -> None:
        """Test a process that no longer exists."""
        assert is_process_alive(4242) is False
        mock_kill.assert_called_once_with(4242, 0)

    @patch("ledgerctl.core.process.os.kill", side_effect=PermissionError)
    def test_unsignalable_process_is_alive(self, _mock_kill) -> None:
        """Test a process owned by another user."""
        assert is_process_alive(4242) is True

    @patch("ledgerctl.core.process.os.kill", side_effect=OSError("weird"))
    def test_ambiguous_error_is_alive(self, _mock_kill) -> None:
        """Test unknown OS errors never report a process as dead."""
        assert is_process_alive(4242) is True

    @patch("ledgerctl.core.process.psutil.Process")
    @patch("ledgerctl.core.process.os.kill")
    def test_running_process(self, _mock_kill, mock_process) -> None:
        """Test a running process is alive."""
        mock_process.return_value = Mock(status=Mock(return_value=psutil.STATUS_RUNNING))
        assert is_process_alive(4242) is True

    @patch("ledgerctl.core.process.psutil.Process")
    @patch("ledgerctl.core.process.os.kill")
    def test_zombie_status_is_dead(self, _mock_kill, mock_process) -> None:
        """Test a zombie process counts as dead."""
        mock_process.return_value = Mock(status=Mock(return_value=psutil.STATUS_ZOMBIE))
        assert is_process_alive(4242) is False

    @patch("ledgerctl.core.process.psutil.Process", side_effect=psutil.NoSuchProcess(4242))
    @patch("ledgerctl.core.process.os.kill")
    def test_process_vanished(self, _mock_kill, _mock_process) -> None:
        """Test a process that exits between probes."""
        assert is_process_alive(4242) is False

    @patch("ledgerctl.core.process.psutil.Process", side_effect=psutil.AccessDenied(4242))
    @patch("ledgerctl.core.process.os.kill")
    def test_access_denied_is_alive(self, _mock_kill, _mock_process) -> None:
        """Test an unreadable status counts as alive."""
        assert is_process_alive(4242) is True

    def test_current_process_is_alive(self) -> None:
        """Test the real probe against this interpreter."""
        import os

        assert is_process_alive(os.getpid()) is True
