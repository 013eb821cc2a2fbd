"""
Хранилища пользователей и ссылок.

`InMemoryStore` держит все в памяти процесса, `SqlStore` хранит те же
записи в базе через SQLAlchemy. Оба сохраняют порядок вставки и отдают
наружу копии записей.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import timezone
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from shortener.database import LinkRow, UserRow, VisitRow, make_engine, make_session_factory
from shortener.errors import Conflict
from shortener.models import Link, User

logger = logging.getLogger(__name__)


def _copy_link(link: Link) -> Link:
    return replace(link, visits=dict(link.visits))


class Store(ABC):
    """Интерфейс хранилища."""

    @abstractmethod
    def add_user(self, user: User) -> None:
        """Добавляет пользователя, `Conflict` если id или email заняты."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def list_users(self) -> List[User]:
        ...

    @abstractmethod
    def add_link(self, link: Link) -> None:
        """Добавляет ссылку, `Conflict` если такой id уже есть."""

    @abstractmethod
    def get_link(self, link_id: str) -> Optional[Link]:
        ...

    @abstractmethod
    def list_links(self) -> List[Link]:
        ...

    @abstractmethod
    def set_long_url(self, link_id: str, long_url: str) -> bool:
        ...

    @abstractmethod
    def delete_link(self, link_id: str) -> bool:
        ...

    @abstractmethod
    def increment_visit(self, link_id: str, visitor_id: str) -> Optional[int]:
        """Увеличивает счетчик посетителя, возвращает новое значение."""


class InMemoryStore(Store):

    def __init__(self):
        self._users = {}
        self._links = {}
        self._lock = threading.RLock()

    def add_user(self, user: User) -> None:
        with self._lock:
            if user.id in self._users:
                raise Conflict("Пользователь с таким id уже существует.")
            if any(u.email == user.email for u in self._users.values()):
                raise Conflict("Этот email уже зарегистрирован.")
            self._users[user.id] = replace(user)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def list_users(self) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users.values()]

    def add_link(self, link: Link) -> None:
        with self._lock:
            if link.id in self._links:
                raise Conflict("Ссылка с таким кодом уже существует.")
            self._links[link.id] = _copy_link(link)

    def get_link(self, link_id: str) -> Optional[Link]:
        with self._lock:
            link = self._links.get(link_id)
            return _copy_link(link) if link else None

    def list_links(self) -> List[Link]:
        with self._lock:
            return [_copy_link(link) for link in self._links.values()]

    def set_long_url(self, link_id: str, long_url: str) -> bool:
        with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return False
            link.long_url = long_url
            return True

    def delete_link(self, link_id: str) -> bool:
        with self._lock:
            return self._links.pop(link_id, None) is not None

    def increment_visit(self, link_id: str, visitor_id: str) -> Optional[int]:
        with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return None
            link.visits[visitor_id] = link.visits.get(visitor_id, 0) + 1
            return link.visits[visitor_id]


def _user_from_row(row: UserRow) -> User:
    return User(id=row.id, email=row.email, password_hash=row.password_hash)


def _link_from_row(row: LinkRow) -> Link:
    created_at = row.created_at
    # SQLite теряет часовой пояс
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Link(
        id=row.id,
        long_url=row.long_url,
        owner_id=row.owner_id,
        created_at=created_at,
        visits={v.visitor_id: v.count for v in row.visits},
    )


class SqlStore(Store):

    max_visit_attempts = 5

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SqlStore":
        logger.info("Using SQL store at %s", database_url)
        return cls(make_session_factory(make_engine(database_url)))

    def _get_user_row(self, db, user_id):
        return db.query(UserRow).filter(UserRow.id == user_id).first()

    def _get_link_row(self, db, link_id):
        return db.query(LinkRow).filter(LinkRow.id == link_id).first()

    def add_user(self, user: User) -> None:
        with self.session_factory() as db:
            if self._get_user_row(db, user.id):
                raise Conflict("Пользователь с таким id уже существует.")
            if db.query(UserRow).filter(UserRow.email == user.email).first():
                raise Conflict("Этот email уже зарегистрирован.")
            db.add(UserRow(id=user.id, email=user.email, password_hash=user.password_hash))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise Conflict("Этот email уже зарегистрирован.") from exc

    def get_user(self, user_id: str) -> Optional[User]:
        with self.session_factory() as db:
            row = self._get_user_row(db, user_id)
            return _user_from_row(row) if row else None

    def list_users(self) -> List[User]:
        with self.session_factory() as db:
            return [_user_from_row(row) for row in db.query(UserRow).order_by(UserRow.seq)]

    def add_link(self, link: Link) -> None:
        with self.session_factory() as db:
            if self._get_link_row(db, link.id):
                raise Conflict("Ссылка с таким кодом уже существует.")
            row = LinkRow(
                id=link.id,
                long_url=link.long_url,
                owner_id=link.owner_id,
                created_at=link.created_at,
            )
            row.visits = [
                VisitRow(link_id=link.id, visitor_id=visitor, count=count)
                for visitor, count in link.visits.items()
            ]
            db.add(row)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise Conflict("Ссылка с таким кодом уже существует.") from exc

    def get_link(self, link_id: str) -> Optional[Link]:
        with self.session_factory() as db:
            row = self._get_link_row(db, link_id)
            return _link_from_row(row) if row else None

    def list_links(self) -> List[Link]:
        with self.session_factory() as db:
            return [_link_from_row(row) for row in db.query(LinkRow).order_by(LinkRow.seq)]

    def set_long_url(self, link_id: str, long_url: str) -> bool:
        with self.session_factory() as db:
            row = self._get_link_row(db, link_id)
            if row is None:
                return False
            row.long_url = long_url
            db.commit()
            return True

    def delete_link(self, link_id: str) -> bool:
        with self.session_factory() as db:
            row = self._get_link_row(db, link_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def increment_visit(self, link_id: str, visitor_id: str) -> Optional[int]:
        with self.session_factory() as db:
            if self._get_link_row(db, link_id) is None:
                return None
            visit_filter = (VisitRow.link_id == link_id, VisitRow.visitor_id == visitor_id)
            for _ in range(self.max_visit_attempts):
                # Инкремент выполняет сама база, счетчики параллельных запросов не теряются
                updated = (
                    db.query(VisitRow)
                    .filter(*visit_filter)
                    .update({VisitRow.count: VisitRow.count + 1}, synchronize_session=False)
                )
                if not updated:
                    db.add(VisitRow(link_id=link_id, visitor_id=visitor_id, count=1))
                try:
                    db.commit()
                    break
                except IntegrityError:
                    # Первый переход этого посетителя уже записал другой запрос
                    db.rollback()
                    logger.debug("Visit row for %s on %s inserted concurrently", visitor_id, link_id)
            else:
                raise Conflict("Не удалось учесть переход.")
            return db.query(VisitRow.count).filter(*visit_filter).scalar()


def build_store(settings) -> Store:
    if settings.storage == "sql":
        return SqlStore.from_url(settings.database_url)
    return InMemoryStore()
