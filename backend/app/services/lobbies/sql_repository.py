"""Database-backed lobby repository.

Snapshots live in the ``lobby`` table. Conditional writes are a single
``UPDATE ... WHERE code = :code AND version = :expected``; a row count of
zero means another writer got there first.
"""

import json
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import delete, extract, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.models import LobbyRecord
from .errors import RepositoryUnavailable
from .state import Lobby


logger = logging.getLogger(__name__)


def store_clock_ms(dialect_name: str):
    """SQL expression for the database server's current time in epoch milliseconds."""
    if dialect_name == 'sqlite':
        return (func.julianday('now') - literal(2440587.5)) * literal(86400000.0)
    # clock_timestamp() keeps moving inside a transaction, unlike now()
    return extract('epoch', func.clock_timestamp()) * literal(1000)


class SqlLobbyRepository:
    """Runs inside a Flask app context and uses ``db.session``.

    Every timestamp comes from the database server's clock, so app hosts with
    skewed clocks still agree on timer and expiry arithmetic.
    """

    def _store_now(self) -> int:
        stmt = select(store_clock_ms(db.engine.dialect.name))
        return int(db.session.execute(stmt).scalar_one())

    def now_ms(self) -> int:
        with self._guard('now'):
            now = self._store_now()
            db.session.commit()
        return now

    @contextmanager
    def _guard(self, op: str, code: Optional[str] = None):
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning(f"[store-error] op={op} code={code} error={exc.__class__.__name__}: {exc}")
            raise RepositoryUnavailable(f'Lobby store failed during {op}') from exc

    def get(self, code: str) -> Optional[Lobby]:
        with self._guard('get', code):
            row = db.session.execute(
                select(LobbyRecord.payload, LobbyRecord.version, LobbyRecord.last_activity)
                .where(LobbyRecord.code == code, LobbyRecord.expires_at > self._store_now())
            ).first()
            db.session.commit()
        if row is None:
            return None
        return Lobby.from_dict(json.loads(row.payload), version=row.version, last_activity=row.last_activity)

    def exists(self, code: str) -> bool:
        with self._guard('exists', code):
            found = db.session.execute(
                select(LobbyRecord.code).where(LobbyRecord.code == code, LobbyRecord.expires_at > self._store_now())
            ).first()
            db.session.commit()
        return found is not None

    def add(self, code: str, lobby: Lobby, ttl_seconds: int) -> bool:
        now = self.now_ms()
        with self._guard('add', code):
            # An expired row still holds the primary key
            db.session.execute(
                delete(LobbyRecord)
                .where(LobbyRecord.code == code, LobbyRecord.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            try:
                db.session.execute(insert(LobbyRecord).values(
                    code=code,
                    payload=json.dumps(lobby.to_dict()),
                    version=1,
                    expires_at=now + ttl_seconds * 1000,
                    last_activity=now,
                ))
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                return False
        lobby.version = 1
        lobby.last_activity = now
        return True

    def set(self, code: str, lobby: Lobby, ttl_seconds: int, expected_version: Optional[int] = None) -> bool:
        now = self.now_ms()
        stmt = update(LobbyRecord).where(LobbyRecord.code == code)
        if expected_version is not None:
            stmt = stmt.where(LobbyRecord.version == expected_version, LobbyRecord.expires_at > now)
        stmt = stmt.values(
            payload=json.dumps(lobby.to_dict()),
            version=LobbyRecord.version + 1,
            expires_at=now + ttl_seconds * 1000,
            last_activity=now,
        ).execution_options(synchronize_session=False)
        with self._guard('set', code):
            result = db.session.execute(stmt)
            db.session.commit()
        if result.rowcount == 1:
            if expected_version is not None:
                lobby.version = expected_version + 1
            else:
                with self._guard('set', code):
                    lobby.version = db.session.execute(
                        select(LobbyRecord.version).where(LobbyRecord.code == code)
                    ).scalar_one()
                    db.session.commit()
            lobby.last_activity = now
            return True
        if expected_version is not None:
            return False
        # Unconditional write to a code with no row yet
        return self.add(code, lobby, ttl_seconds)

    def delete(self, code: str, expected_version: Optional[int] = None) -> bool:
        stmt = delete(LobbyRecord).where(LobbyRecord.code == code)
        if expected_version is not None:
            stmt = stmt.where(LobbyRecord.version == expected_version)
        with self._guard('delete', code):
            result = db.session.execute(stmt.execution_options(synchronize_session=False))
            db.session.commit()
        if result.rowcount == 1 or expected_version is None:
            return True
        return not self.exists(code)

    def touch(self, code: str, ttl_seconds: int) -> None:
        now = self.now_ms()
        with self._guard('touch', code):
            db.session.execute(
                update(LobbyRecord)
                .where(LobbyRecord.code == code, LobbyRecord.expires_at > now)
                .values(expires_at=now + ttl_seconds * 1000, last_activity=now)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()

    def purge_expired(self) -> int:
        with self._guard('purge'):
            result = db.session.execute(
                delete(LobbyRecord)
                .where(LobbyRecord.expires_at <= self._store_now())
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        return result.rowcount
