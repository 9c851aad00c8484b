import signal

import pytest

import main

SNAPSHOT = """
<html><body>
  <div aria-label="Search results">
    <a href="/marketplace/item/7/">
      <span data-testid="listing_price">PHP 900</span>
      <span>Mechanical keyboard</span>
      <span>Pasig, Metro Manila</span>
    </a>
  </div>
</body></html>
"""


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "configure_logging", lambda verbose=False: None)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("ASSETS_DIR", str(tmp_path / "assets"))
    monkeypatch.setenv("BROWSER_DATA_DIR", str(tmp_path / "profile"))
    monkeypatch.delenv("HEADLESS", raising=False)
    return tmp_path


@pytest.fixture
def handlers(monkeypatch):
    installed = {}
    monkeypatch.setattr(main.signal, "signal", lambda signum, handler: installed.__setitem__(signum, handler))
    return installed


@pytest.fixture
def monitors(monkeypatch):
    created = []

    class RecordingMonitor:

        def __init__(self, config):
            self.config = config
            self.running = True
            self.stopped = False
            self.max_cycles = "not run"
            created.append(self)

        def run_forever(self, max_cycles=None):
            self.max_cycles = max_cycles

        def stop(self):
            self.running = False
            self.stopped = True

    monkeypatch.setattr(main, "MarketplaceMonitor", RecordingMonitor)
    return created


def test_replay_prints_listings(tmp_path, capsys):
    snapshot = tmp_path / "marketplace_debug.html"
    snapshot.write_text(SNAPSHOT, encoding="utf-8")

    assert main.main(["--replay", str(snapshot)]) == 0

    out = capsys.readouterr().out
    assert (
        "PHP 900 | Mechanical keyboard | Pasig, Metro Manila | https://www.facebook.com/marketplace/item/7/"
    ) in out


def test_once_runs_a_single_cycle(workspace, handlers, monitors):
    assert main.main(["--once", "--query", "iphone", "--interval-ms", "5000"]) == 0

    [monitor] = monitors
    assert monitor.max_cycles == 1
    assert monitor.config.query == "iphone"
    assert monitor.config.interval_ms == 5000
    assert (workspace / "data").is_dir()


def test_without_once_runs_until_stopped(workspace, handlers, monitors):
    assert main.main([]) == 0

    assert monitors[0].max_cycles is None


def test_headless_flag_absent_keeps_environment(workspace, handlers, monitors, monkeypatch):
    monkeypatch.setenv("HEADLESS", "true")

    main.main(["--once"])

    assert monitors[0].config.headless is True


def test_headless_flag_turns_headless_on(workspace, handlers, monitors, monkeypatch):
    monkeypatch.setenv("HEADLESS", "false")

    main.main(["--once", "--headless"])

    assert monitors[0].config.headless is True


def test_second_signal_forces_exit(workspace, handlers, monitors):
    main.main(["--once"])
    handler = handlers[signal.SIGINT]
    assert handlers[signal.SIGTERM] is handler

    handler(signal.SIGINT, None)
    assert monitors[0].stopped

    with pytest.raises(SystemExit) as excinfo:
        handler(signal.SIGINT, None)
    assert excinfo.value.code == 1


def test_unusable_data_directory_is_fatal(workspace, handlers, monitors, monkeypatch):
    blocker = workspace / "blocker"
    blocker.write_text("")
    monkeypatch.setenv("DATA_DIR", str(blocker / "data"))

    with pytest.raises(OSError):
        main.main(["--once"])

    assert monitors == []
