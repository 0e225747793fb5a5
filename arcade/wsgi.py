"""WSGI entrypoint used by Gunicorn."""
import os

from arcade.app import create_app
from arcade.config import _env_bool

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

if _env_bool('TICK_TOURNAMENTS_ON_BOOT', False):
    with app.app_context():
        from arcade.services.tournament_finalizer import tick_tournaments
        result = tick_tournaments()
        print(
            f"Tournament tick on boot: status_changes={result['status_changes']} "
            f"finalized={len(result['finalized'])}"
        )
