from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    socketio.init_app(flask_app)

    # Socket.IO carries spawn alerts to subscribed members
    try:
        from bosstrack.socketio_events import register_socketio_handlers
        register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from bosstrack.models import Boss, Guild, User
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            guild = Guild(name='Vanguard')
            db.session.add(guild)
            db.session.flush()
            for name in ['alice', 'bob', 'cara']:
                db.session.add(User(username=name, guild_id=guild.id))
            db.session.add(Boss(name='Lady Vox', level=55, location='Permafrost',
                                server='Quarm', respawn_interval=60, difficulty='hard'))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('recompute-contributions')
    @click.argument('guild_id', type=int)
    def recompute_contributions_command(guild_id):
        """Rebuilds a guild's contribution scores from spawn history."""
        from bosstrack.services.respawn import build_services
        with flask_app.app_context():
            services = build_services(flask_app)
            rows = services.ledger.recompute(guild_id)
            print(f'Recomputed {len(rows)} contribution rows for guild {guild_id}')

    @click.command('dispatch-alerts')
    def dispatch_alerts_command():
        """Sends every spawn alert that is due right now."""
        from bosstrack.services.respawn import build_services
        from bosstrack.services.respawn.notifications import dispatch_alerts
        from bosstrack.transport import SocketIOTransport
        with flask_app.app_context():
            services = build_services(flask_app)
            sent = dispatch_alerts(services.store, services.scheduler, SocketIOTransport(socketio),
                                   services.clock.now())
            print(f'Dispatched {sent} spawn alerts')

    @click.command('boss-forecast')
    @click.argument('boss_id', type=int)
    def boss_forecast_command(boss_id):
        """Prints the respawn timer and spawn predictions for a boss."""
        from bosstrack.models import Boss
        from bosstrack.services.respawn import build_services
        from bosstrack.services.respawn.predictor import forecast
        with flask_app.app_context():
            services = build_services(flask_app)
            boss = services.store.get(Boss, boss_id)
            events = services.reports.history(boss_id)
            result = forecast(boss, events, services.clock.now(),
                              count=flask_app.config.get('PREDICTION_COUNT', 3),
                              window_count=flask_app.config.get('WINDOW_COUNT', 3))
            timer = result['timer']
            print(f'{boss.name}: next spawn {timer.next_spawn} ({timer.formatted_remaining})')
            print(f'accuracy: {result["accuracy"]}%')
            for when in result['predictions']:
                print(f'  predicted {when.isoformat()}')
            for window in result['windows']:
                print(f'  window {window.start.isoformat()} .. {window.end.isoformat()} '
                      f'({window.confidence}%)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(recompute_contributions_command)
    flask_app.cli.add_command(dispatch_alerts_command)
    flask_app.cli.add_command(boss_forecast_command)

    return flask_app
