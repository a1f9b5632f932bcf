"""Paged reads through a repository's DAO.

Protean result sets are capped per call, so anything that must see every
match walks the pages with offset/limit.
"""

from protean.utils.globals import current_domain

from escrow import settings


def fetch_all(aggregate_cls, order_by: str = "created_at", batch_size: int | None = None, **filters) -> list:
    size = batch_size or settings.sweep_batch_size()
    dao = current_domain.repository_for(aggregate_cls)._dao
    found, offset = [], 0
    while True:
        page = dao.query.filter(**filters).order_by(order_by).offset(offset).limit(size).all()
        found.extend(page.items)
        if not page.has_next or not page.items:
            return found
        offset += size
