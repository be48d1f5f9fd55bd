from turnroom import create_app
from turnroom.services.turns import scheduler

from conftest import TestConfig


class SweeperConfig(TestConfig):
    TESTING = False
    ENABLE_STALL_SWEEPER = True


def _record_background_tasks(monkeypatch):
    started = []
    monkeypatch.setattr(scheduler.socketio, 'start_background_task', lambda *args, **kwargs: started.append(args))
    monkeypatch.setattr(scheduler, '_sweeper_started', False)
    return started


def test_create_app_never_starts_sweeper(monkeypatch):
    started = _record_background_tasks(monkeypatch)
    create_app(SweeperConfig)
    assert started == []


def test_sweeper_starts_once_per_process(monkeypatch):
    started = _record_background_tasks(monkeypatch)
    app = create_app(SweeperConfig)
    assert scheduler.start_stall_sweeper(app) is True
    assert scheduler.start_stall_sweeper(app) is False
    assert len(started) == 1


def test_sweeper_stays_off_when_disabled_or_testing(monkeypatch, flask_app):
    started = _record_background_tasks(monkeypatch)
    assert scheduler.start_stall_sweeper(flask_app) is False
    flask_app.config['ENABLE_STALL_SWEEPER'] = True
    assert scheduler.start_stall_sweeper(flask_app) is False
    assert started == []
