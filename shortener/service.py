"""
Операции над ссылками: создание, изменение, удаление, переход и статистика.

Права проверяются здесь, HTTP-слой только переводит ошибки в ответы.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Union

from shortener.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from shortener.models import Link, LinkView, VisitStats
from shortener.store import Store
from shortener.utils import generate_id

logger = logging.getLogger(__name__)


def aggregate(link: Union[Link, Mapping[str, int]]) -> VisitStats:
    """Считает общее число переходов и число уникальных посетителей."""
    visits = link.visits if isinstance(link, Link) else link
    return VisitStats(total=sum(visits.values()), unique=len(visits))


def links_for_user(user_id: str, store: Store) -> Dict[str, LinkView]:
    """Ссылки пользователя в порядке добавления, со статистикой."""
    result = {}
    for link in store.list_links():
        if link.owner_id != user_id:
            continue
        stats = aggregate(link)
        result[link.id] = LinkView(link=link, total=stats.total, unique=stats.unique)
    return result


def _require_url(long_url: str) -> str:
    long_url = (long_url or "").strip()
    if not long_url:
        raise ValidationFailed("Укажите адрес ссылки.")
    return long_url


def get_owned(store: Store, link_id: str, requester_id: str) -> Link:
    """Находит ссылку и проверяет, что она принадлежит пользователю."""
    link = store.get_link(link_id)
    if link is None:
        raise NotFound()
    if link.owner_id != requester_id:
        raise Forbidden()
    return link


def create(
    store: Store,
    owner_id: str,
    long_url: str,
    length: int = 6,
    max_attempts: int = 10,
) -> Link:
    """
    Создает короткую ссылку.
    Код генерируется заново, пока не найдется свободный.
    """
    if not owner_id or store.get_user(owner_id) is None:
        raise Unauthenticated()
    long_url = _require_url(long_url)

    for _ in range(max_attempts):
        link_id = generate_id(length)
        if store.get_link(link_id) is not None:
            logger.debug("Short code collision on %s", link_id)
            continue
        link = Link(
            id=link_id,
            long_url=long_url,
            owner_id=owner_id,
            created_at=datetime.now(timezone.utc),
        )
        try:
            store.add_link(link)
        except Conflict:
            logger.debug("Short code %s taken concurrently", link_id)
            continue
        logger.info("User %s created link %s", owner_id, link_id)
        return link

    raise Conflict("Не удалось подобрать свободный короткий код.")


def update(store: Store, link_id: str, requester_id: str, new_long_url: str) -> Link:
    """Меняет адрес, на который ведет ссылка."""
    link = get_owned(store, link_id, requester_id)
    new_long_url = _require_url(new_long_url)
    if not store.set_long_url(link_id, new_long_url):
        raise NotFound()
    link.long_url = new_long_url
    logger.info("User %s updated link %s", requester_id, link_id)
    return link


def delete(store: Store, link_id: str, requester_id: str) -> None:
    get_owned(store, link_id, requester_id)
    if not store.delete_link(link_id):
        raise NotFound()
    logger.info("User %s deleted link %s", requester_id, link_id)


def resolve(store: Store, link_id: str) -> str:
    """Возвращает исходный адрес. Владелец не проверяется."""
    link = store.get_link(link_id)
    if link is None:
        raise NotFound()
    return link.long_url


def record_visit(store: Store, link_id: str, visitor_id: str) -> int:
    count = store.increment_visit(link_id, visitor_id)
    if count is None:
        raise NotFound()
    return count
