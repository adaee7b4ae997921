"""
Tests for the click CLI: port checks, browser launching, the serve entry
point and the maintenance commands.

Server startup is exercised with uvicorn.run mocked out so no socket is
actually served.
"""

import socket
from unittest.mock import Mock, patch

import pytest
import yaml
from click.testing import CliRunner

from todo_manager.cli import (
    main, check_port_available, ensure_port_available, launch_browser_safely,
    print_startup_banner, PortConflictError
)
from todo_manager.lists import ListRepository
from todo_manager.storage import JsonFileStore
from todo_manager.tasks import TaskRepository


@pytest.fixture
def runner():
    return CliRunner()


class TestPortManagement:
    """Port availability checks."""

    def test_check_port_available_free_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
            assert not check_port_available("127.0.0.1", port)

        assert check_port_available("127.0.0.1", port)

    def test_ensure_port_available_raises_on_conflict(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
            with pytest.raises(PortConflictError, match=str(port)):
                ensure_port_available("127.0.0.1", port)


class TestBrowserLaunching:
    """Browser launch never blocks or breaks server startup."""

    @patch("todo_manager.cli.multiprocessing.Process")
    @patch("todo_manager.cli.logger")
    def test_launch_browser_safely_success(self, mock_logger, mock_process_class):
        mock_process = Mock()
        mock_process.is_alive.return_value = False
        mock_process_class.return_value = mock_process

        launch_browser_safely("http://localhost:3000")

        mock_process.start.assert_called_once()
        mock_process.join.assert_called_once_with(timeout=2.0)
        mock_logger.info.assert_called_with("Browser launched for http://localhost:3000")

    @patch("todo_manager.cli.multiprocessing.Process")
    @patch("todo_manager.cli.logger")
    def test_launch_browser_safely_timeout(self, mock_logger, mock_process_class):
        mock_process = Mock()
        mock_process.is_alive.return_value = True
        mock_process_class.return_value = mock_process

        launch_browser_safely("http://localhost:3000")

        mock_process.terminate.assert_called_once()
        mock_logger.debug.assert_called_with("Browser launch process timed out, terminated")

    @patch("todo_manager.cli.multiprocessing.Process")
    @patch("todo_manager.cli.logger")
    def test_launch_browser_safely_exception(self, mock_logger, mock_process_class):
        mock_process_class.side_effect = OSError("Process creation failed")

        launch_browser_safely("http://localhost:3000")

        assert "Failed to launch browser" in mock_logger.warning.call_args[0][0]


class TestStartupBanner:

    def test_banner_lists_urls(self, capsys, tmp_path):
        print_startup_banner("127.0.0.1", 3000, tmp_path)

        out = capsys.readouterr().out
        assert "TO-DO LIST MANAGER STARTED" in out
        assert "http://127.0.0.1:3000/api" in out
        assert "storage.json" in out


class TestServeCommand:

    @patch("todo_manager.cli.launch_browser_safely")
    @patch("todo_manager.cli.uvicorn.run")
    def test_serve_runs_uvicorn(self, mock_run, mock_browser, runner, tmp_path):
        with patch("todo_manager.cli.check_port_available", return_value=True):
            result = runner.invoke(
                main, ["serve", "--port", "9123", "--data-dir", str(tmp_path), "--no-browser"]
            )

        assert result.exit_code == 0, result.output
        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["port"] == 9123
        assert mock_run.call_args.kwargs["host"] == "127.0.0.1"
        app = mock_run.call_args.args[0]
        assert app.state.settings.data_dir == tmp_path
        mock_browser.assert_not_called()

    @patch("todo_manager.cli.launch_browser_safely")
    @patch("todo_manager.cli.uvicorn.run")
    def test_serve_opens_browser(self, mock_run, mock_browser, runner, tmp_path):
        with patch("todo_manager.cli.check_port_available", return_value=True):
            result = runner.invoke(main, ["serve", "--port", "9124", "--data-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        mock_browser.assert_called_once_with("http://127.0.0.1:9124")

    @patch("todo_manager.cli.uvicorn.run")
    def test_serve_strict_load_flag(self, mock_run, runner, tmp_path):
        with patch("todo_manager.cli.check_port_available", return_value=True):
            result = runner.invoke(
                main, ["serve", "--data-dir", str(tmp_path), "--strict-load", "--no-browser"]
            )

        assert result.exit_code == 0, result.output
        assert mock_run.call_args.args[0].state.store.strict_load is True

    @patch("todo_manager.cli.uvicorn.run")
    def test_serve_port_conflict(self, mock_run, runner, tmp_path):
        with patch("todo_manager.cli.check_port_available", return_value=False):
            result = runner.invoke(main, ["serve", "--port", "9125", "--data-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "already in use" in result.output
        mock_run.assert_not_called()

    def test_invalid_log_level(self, runner):
        result = runner.invoke(main, ["--log-level", "LOUD", "stats"])
        assert result.exit_code != 0
        assert "Invalid value" in result.output


class TestMaintenanceCommands:

    @pytest.fixture
    def seeded_dir(self, tmp_path):
        store = JsonFileStore(tmp_path)
        task_list = ListRepository(store).create("Groceries")
        repo = TaskRepository(store)
        milk = repo.create(task_list.id, "Milk")
        repo.create(task_list.id, "Bread")
        repo.toggle_completion(milk.id)
        return tmp_path, task_list.id

    def test_backup_without_storage(self, runner, tmp_path):
        result = runner.invoke(main, ["backup", "--data-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "nothing to back up" in result.output

    def test_backup_creates_file(self, runner, seeded_dir):
        data_dir, _ = seeded_dir
        result = runner.invoke(main, ["backup", "--data-dir", str(data_dir)])

        assert result.exit_code == 0
        assert "Backup created" in result.output
        assert len(list(data_dir.glob("storage.backup.*.json"))) == 1

    def test_stats_overall(self, runner, seeded_dir):
        data_dir, _ = seeded_dir
        result = runner.invoke(main, ["stats", "--data-dir", str(data_dir)])

        assert result.exit_code == 0
        assert "Total:      2" in result.output
        assert "Completion: 50.0%" in result.output

    def test_stats_unknown_list(self, runner, seeded_dir):
        data_dir, _ = seeded_dir
        result = runner.invoke(
            main, ["stats", "--data-dir", str(data_dir), "--list-id", "missing"]
        )
        assert result.exit_code == 1
        assert "Task list not found" in result.output

    def test_import(self, runner, tmp_path):
        source = tmp_path / "lists.yaml"
        source.write_text(
            yaml.dump({"lists": [{"name": "Work", "tasks": [{"title": "Report"}]}]}),
            encoding="utf-8",
        )
        data_dir = tmp_path / "data"

        result = runner.invoke(main, ["import", str(source), "--data-dir", str(data_dir)])

        assert result.exit_code == 0, result.output
        assert "Imported 1 new list(s)" in result.output
        assert [task.title for task in TaskRepository(JsonFileStore(data_dir)).list_all()] == ["Report"]

    def test_import_invalid_file(self, runner, tmp_path):
        source = tmp_path / "bad.yaml"
        source.write_text("- just\n- a list\n", encoding="utf-8")

        result = runner.invoke(main, ["import", str(source), "--data-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "must contain a YAML dictionary" in result.output

    def test_cleanup(self, runner, seeded_dir):
        data_dir, _ = seeded_dir
        result = runner.invoke(main, ["cleanup", "--data-dir", str(data_dir)])

        assert result.exit_code == 0
        assert "Removed 0 orphaned task(s)" in result.output


class TestStrictLoadInMaintenanceCommands:
    """TODO_STRICT_LOAD stops maintenance commands before they can overwrite unreadable files."""

    @pytest.fixture
    def corrupted_dir(self, tmp_path):
        store = JsonFileStore(tmp_path)
        ListRepository(store).create("Groceries")
        ListRepository(store).create("Work")
        store.primary_path.write_text("garbage-primary", encoding="utf-8")
        store.backup_path.write_text("garbage-backup", encoding="utf-8")
        return tmp_path

    def test_import_refuses_to_overwrite(self, runner, tmp_path, corrupted_dir, monkeypatch):
        monkeypatch.setenv("TODO_STRICT_LOAD", "1")
        source = tmp_path / "in.yaml"
        source.write_text(yaml.dump({"lists": [{"name": "New"}]}), encoding="utf-8")

        result = runner.invoke(main, ["import", str(source), "--data-dir", str(corrupted_dir)])

        assert result.exit_code == 1
        assert "Import failed" in result.output
        assert (corrupted_dir / "storage.json").read_text(encoding="utf-8") == "garbage-primary"
        assert (corrupted_dir / "storage.backup.json").read_text(encoding="utf-8") == "garbage-backup"

    @pytest.mark.parametrize("command", [["stats"], ["cleanup"]])
    def test_read_commands_fail(self, runner, corrupted_dir, monkeypatch, command):
        monkeypatch.setenv("TODO_STRICT_LOAD", "1")

        result = runner.invoke(main, command + ["--data-dir", str(corrupted_dir)])

        assert result.exit_code == 1
        assert "unreadable" in result.output
        assert (corrupted_dir / "storage.json").read_text(encoding="utf-8") == "garbage-primary"

    def test_lenient_mode_still_falls_back(self, runner, corrupted_dir, monkeypatch):
        monkeypatch.delenv("TODO_STRICT_LOAD", raising=False)

        result = runner.invoke(main, ["stats", "--data-dir", str(corrupted_dir)])

        assert result.exit_code == 0
        assert "Total:      0" in result.output
