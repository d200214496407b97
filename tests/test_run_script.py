"""
Tests for the run.py launcher script.

Validates each step of the launcher without actually starting services.
"""
import sys
import urllib.error
from unittest.mock import MagicMock, Mock, patch

# Import functions from run.py at project root
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parent.parent))
import run


def _ok_response():
    mock_resp = MagicMock()
    mock_resp.__enter__ = Mock(return_value=Mock(status=200))
    mock_resp.__exit__ = Mock(return_value=False)
    return mock_resp


class TestCheckPythonDeps:
    """Test Python dependency checking."""

    def test_all_deps_present(self):
        """All required packages are installed in the test environment."""
        assert run.check_python_deps() is True

    @patch("builtins.__import__", side_effect=ImportError("no module"))
    def test_missing_dep_returns_false(self, mock_import):
        assert run.check_python_deps() is False


class TestWaitForApp:
    """Test health check waiting."""

    @patch("urllib.request.urlopen")
    def test_healthy_immediately(self, mock_urlopen):
        mock_urlopen.return_value = _ok_response()
        assert run.wait_for_app() is True
        assert mock_urlopen.call_args[0][0].full_url.endswith("/health")

    @patch("run.MAX_WAIT_SECONDS", 1)
    @patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused"))
    def test_timeout_returns_false(self, mock_urlopen):
        assert run.wait_for_app() is False

    @patch("time.sleep")
    @patch("urllib.request.urlopen")
    def test_healthy_after_retries(self, mock_urlopen, mock_sleep):
        """Becomes healthy after initial failures."""
        mock_urlopen.side_effect = [
            urllib.error.URLError("refused"),
            urllib.error.URLError("refused"),
            _ok_response(),
        ]
        assert run.wait_for_app() is True
        assert mock_sleep.call_count == 2


class TestOpenBrowser:
    @patch("webbrowser.open")
    @patch("run.wait_for_app", return_value=True)
    def test_opens_when_healthy(self, mock_wait, mock_open):
        run.open_browser()
        mock_open.assert_called_once_with(run.APP_URL)

    @patch("webbrowser.open")
    @patch("run.wait_for_app", return_value=False)
    def test_opens_anyway_when_unverified(self, mock_wait, mock_open):
        run.open_browser()
        mock_open.assert_called_once_with(run.APP_URL)


class TestMainFlow:
    """Test the main() orchestration flow."""

    @patch("run.launch_app")
    @patch("run.check_python_deps", return_value=True)
    def test_full_success_flow(self, mock_deps, mock_launch):
        result = run.main()
        assert result == 0
        mock_deps.assert_called_once()
        mock_launch.assert_called_once()

    @patch("run.launch_app")
    @patch("run.check_python_deps", return_value=False)
    def test_missing_deps_exits(self, mock_deps, mock_launch):
        result = run.main()
        assert result == 1
        mock_launch.assert_not_called()


class TestLaunchApp:
    """Test the app launcher function."""

    @patch("threading.Thread")
    @patch("subprocess.run")
    def test_launch_calls_python_m_src(self, mock_run, mock_thread):
        mock_t = Mock()
        mock_thread.return_value = mock_t
        run.launch_app()
        mock_run.assert_called_once()
        args = mock_run.call_args[0][0]
        assert args[0] == sys.executable
        assert args[1:] == ["-m", "src"]

    @patch("threading.Thread")
    @patch("subprocess.run")
    def test_launch_starts_browser_thread(self, mock_run, mock_thread):
        mock_t = Mock()
        mock_thread.return_value = mock_t
        run.launch_app()
        mock_thread.assert_called_once()
        mock_t.start.assert_called_once()
        assert mock_thread.call_args[1]["daemon"] is True
