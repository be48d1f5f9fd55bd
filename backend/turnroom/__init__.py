from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import models so Flask-Migrate sees every table
    from turnroom import models  # noqa: F401

    from turnroom.main import main
    flask_app.register_blueprint(main)

    from turnroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from turnroom.api.cron import cron
    flask_app.register_blueprint(cron, url_prefix='/api/cron')

    from turnroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the prompt catalog."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            added = _seed_prompts()
            click.echo(f'Database has been reset and seeded with {added} prompts!')

    @click.command('seed-prompts')
    def seed_prompts_command():
        """Adds any catalog prompts that are not in the database yet."""
        with flask_app.app_context():
            added = _seed_prompts()
            click.echo(f'Seeded {added} new prompts.')

    @click.command('stall-sweep')
    def stall_sweep_command():
        """Auto-skips every turn that stalled after all members nudged."""
        from turnroom.services.turns.scheduler import run_stall_sweep
        skipped = run_stall_sweep(flask_app)
        for entry in skipped:
            click.echo(f"room={entry['room_code']} skipped={entry['skipped_user_id']} removed={entry['removed']}")
        click.echo(f'Stall sweep done: {len(skipped)} turn(s) skipped.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_prompts_command)
    flask_app.cli.add_command(stall_sweep_command)

    return flask_app


def _seed_prompts():
    from turnroom.models import Prompt
    from turnroom.prompt_catalog import CATALOG

    added = 0
    for mode, entries in CATALOG.items():
        existing = {p.text for p in Prompt.query.filter_by(mode=mode)}
        for text, prompt_type in entries:
            if text in existing:
                continue
            db.session.add(Prompt(text=text, prompt_type=prompt_type, mode=mode))
            added += 1
    db.session.commit()
    return added
