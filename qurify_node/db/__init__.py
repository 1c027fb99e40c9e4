from .insertions import PgInsertionSource
from .pg_notify import notify, notify_json, listen
from .repositories import DBGameProgressRepository, DBProfileRepository, DBScoreRecordRepository
from .session import engine, create_session, database_url
