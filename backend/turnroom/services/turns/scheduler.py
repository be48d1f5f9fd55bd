import time

from turnroom import socketio
from .constants import STALL_SWEEP_INTERVAL_SEC


_sweeper_started = False


def run_stall_sweep(app):
    """Run one stall sweep inside an app context and return the skipped rooms."""
    from .coordinator import get_coordinator

    with app.app_context():
        return get_coordinator().stall_sweep()


def start_stall_sweeper(app) -> bool:
    """Start the periodic stall sweeper as a Socket.IO background task.

    - No-ops in TESTING mode and unless ENABLE_STALL_SWEEPER is set
    - Starts at most once per process
    - A failed sweep is logged and the loop keeps going
    - Started by run.py, not create_app, so `flask` CLI processes never sweep
    """
    global _sweeper_started
    if app.config.get('TESTING') or not app.config.get('ENABLE_STALL_SWEEPER'):
        return False
    if _sweeper_started:
        app.logger.info("[sweeper-skip] already running")
        return False
    _sweeper_started = True

    interval = int(app.config.get('STALL_SWEEP_INTERVAL_SEC', STALL_SWEEP_INTERVAL_SEC))
    app.logger.info(f"[sweeper-start] interval={interval}s")

    def _worker(delay: int):
        while True:
            time.sleep(delay)
            try:
                skipped = run_stall_sweep(app)
                if skipped:
                    app.logger.info(f"[sweeper-tick] skipped={len(skipped)}")
            except Exception:
                app.logger.exception("[sweeper-error] stall sweep failed")

    socketio.start_background_task(_worker, interval)
    return True
