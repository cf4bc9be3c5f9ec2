# collagify/services/store.py
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from collagify.database import Base, create_db_engine, create_session_factory
from collagify.errors import DuplicateChannelError, StoreError
from collagify.models import Channel, Link
from collagify.schemas import DayGroup, DrainResult, LinkItem

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


def _wall_clock(at: datetime) -> datetime:
    # The store never converts zones; an aware value is kept by its wall-clock reading.
    return at.replace(tzinfo=None) if at is not None and at.tzinfo is not None else at


def _is_unique_violation(error: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed", PostgreSQL: "duplicate key value violates unique constraint"
    message = str(error.orig).lower()
    return "unique" in message or "duplicate" in message


class AggregationStore:
    """Registered channels and their pending photo links, grouped by calendar day."""

    def __init__(self, database_url: str):
        try:
            self.engine = create_db_engine(database_url)
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StoreError("open database", e) from e
        self.SessionLocal = create_session_factory(self.engine)
        self._lock = ReadWriteLock()

    @contextmanager
    def _session(self):
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def register_channel(self, chat_id: int, at: datetime) -> None:
        with self._lock.write(), self._session() as db:
            db.add(Channel(chat_id=chat_id, registered_at=_wall_clock(at)))
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if _is_unique_violation(e):
                    raise DuplicateChannelError(chat_id, e) from e
                raise StoreError(f"register chat {chat_id}", e) from e
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"register chat {chat_id}", e) from e

    def record_link(self, chat_id: int, message_id: int, at: datetime, url: str) -> None:
        with self._lock.write(), self._session() as db:
            db.add(Link(chat_id=chat_id, message_id=message_id, submitted_at=_wall_clock(at), url=url))
            try:
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"register new link for chat {chat_id}", e) from e

    def list_channels(self) -> List[int]:
        with self._lock.read(), self._session() as db:
            try:
                rows = db.query(Channel.chat_id).order_by(Channel.chat_id.asc()).all()
            except SQLAlchemyError as e:
                raise StoreError("select chats", e) from e
        return [row[0] for row in rows]

    def drain_groups(self, chat_id: int) -> DrainResult:
        """
        Read every pending link of a channel and group it by calendar day.

        Rows are read in submission order (ties broken by insertion order) and a
        new group starts each time the day changes against the previous row.
        Nothing is deleted here; see `delete_links`.
        """
        with self._lock.read(), self._session() as db:
            try:
                rows = (
                    db.query(Link.submitted_at, Link.url, Link.message_id)
                    .filter(Link.chat_id == chat_id)
                    .order_by(Link.submitted_at.asc(), Link.id.asc())
                    .all()
                )
            except SQLAlchemyError as e:
                raise StoreError(f"select links for chat {chat_id}", e) from e

        result = DrainResult()
        current = None
        for submitted_at, url, message_id in rows:
            result.message_ids.append(message_id)
            day = submitted_at.date().isoformat()
            if current is None or current.day != day:
                current = DayGroup(day=day)
                result.groups.append(current)
            current.links.append(LinkItem(message_id=message_id, url=url, submitted_at=submitted_at))
        return result

    def delete_links(self, chat_id: int, message_ids: Iterable[int]) -> int:
        """Delete the given links of a channel. Ids that are already gone are ignored."""
        ids = list(message_ids)
        if not ids:
            return 0
        with self._lock.write(), self._session() as db:
            try:
                deleted = (
                    db.query(Link)
                    .filter(Link.chat_id == chat_id, Link.message_id.in_(ids))
                    .delete(synchronize_session=False)
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise StoreError(f"delete links for chat {chat_id}", e) from e
        logger.debug("Deleted %d link(s) of chat %s", deleted, chat_id)
        return deleted

    def close(self) -> None:
        self.engine.dispose()
