"""``INSERT .. ON CONFLICT`` builders for the backends the app supports."""
from sqlalchemy.dialects import postgresql, sqlite

from arcade.app import db
from arcade.errors import UpstreamFailure

_UPSERT_DIALECTS = {
    'sqlite': sqlite.insert,
    'postgresql': postgresql.insert,
}


def dialect_insert(model):
    name = db.engine.dialect.name
    insert = _UPSERT_DIALECTS.get(name)
    if insert is None:
        raise UpstreamFailure(f'Upserts are not supported on the {name} backend')
    return insert(model)
