import logging

import pytest
from openpyxl import load_workbook

import main
from robots_audit import __description__
from robots_audit.audit.scheduler import Job
from robots_audit.utils.logger import JSONFormatter, NoiseFilter, get_audit_logger, setup_logging

from .conftest import StubFetcher


class StubWebFetcher(StubFetcher):
    pages = {}

    def __init__(self, **kwargs):
        super().__init__(self.pages)
        self.options = kwargs

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    def get_stats(self):
        return {'total_requests': len(self.calls)}


def test_dry_run_counts_links(link_workbook, monkeypatch, capsys, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)

    assert main.main([str(link_workbook), "--dry-run"]) == 0
    assert "3 links found" in capsys.readouterr().out


def test_full_run_writes_output(link_workbook, stub_pages, monkeypatch, capsys, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(StubWebFetcher, "pages", stub_pages)
    monkeypatch.setattr(main, "WebFetcher", StubWebFetcher)
    output = tmp_path / "result.xlsx"

    assert main.main([str(link_workbook), str(output), "--workers", "2"]) == 0
    assert f"Finished. Output: {output}" in capsys.readouterr().out

    ws = load_workbook(output)["Links"]
    assert ws.cell(row=2, column=4).value.startswith("✅")
    assert ws.cell(row=3, column=4).value == "❌ X-Robots-Tag found: noindex"
    assert ws.cell(row=4, column=4).value is None
    assert ws.cell(row=5, column=4).value == "❌ Meta robots found: noindex,follow"


def test_missing_input_workbook(monkeypatch, capsys, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)

    assert main.main([str(tmp_path / "missing.xlsx")]) == 1
    assert "Failed to open workbook" in capsys.readouterr().out


def test_bad_worker_count(capsys, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main.main(["--workers", "0"]) == 1
    assert "--workers" in capsys.readouterr().out


def test_missing_config_file(capsys, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert main.main(["--config", "absent.yaml"]) == 1
    assert "Configuration file not found" in capsys.readouterr().out


def test_help_shows_package_description(capsys):
    with pytest.raises(SystemExit):
        main.main(["--help"])

    assert __description__ in capsys.readouterr().out


def test_setup_logging_installs_handlers(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging({'level': 'DEBUG', 'file': str(tmp_path / "logs" / "audit.log")}, enable_json=True)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 3
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert (tmp_path / "logs" / "audit.log").exists()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_noise_filter():
    noise = NoiseFilter()

    assert noise.filter(logging.makeLogRecord({'name': 'aiohttp.access'})) is False
    assert noise.filter(logging.makeLogRecord({'name': 'robots_audit.audit'})) is True


def test_job_events_carry_context(caplog):
    log = get_audit_logger("robots_audit.test", worker="worker-3")
    job = Job(row=7, url="https://example.com/")

    with caplog.at_level(logging.INFO, logger="robots_audit.test"):
        log.log_job_event(logging.INFO, job, "done")

    record = caplog.records[-1]
    assert record.getMessage() == "[row 7] done"
    assert (record.worker, record.row, record.url) == ("worker-3", 7, "https://example.com/")
