import os

from turnroom import create_app, socketio
from turnroom.services.turns.scheduler import start_stall_sweeper

app = create_app()

if __name__ == '__main__':
    debug = True
    # The reloader re-runs this block in a child; only the serving child sweeps
    if not debug or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        start_stall_sweeper(app)
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=debug)
