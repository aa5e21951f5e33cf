from sqlalchemy import func, select

from erp.config import get_settings


def get_pagination(page: int = 1, page_size: int | None = None) -> tuple[int, int]:
    settings = get_settings()
    if page_size is None:
        page_size = settings.DEFAULT_PAGE_SIZE
    page = max(int(page), 1)
    limit = min(max(int(page_size), 1), settings.MAX_PAGE_SIZE)
    offset = (page - 1) * limit
    return limit, offset


def paging_data(items: list, total: int, page: int, page_size: int) -> dict:
    total_pages = (total + page_size - 1) // page_size if page_size else 0
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
    }


def paginate(db, stmt, page: int, page_size: int | None, *, order_by=(), options=()):
    """Run ``stmt`` for one page; the total is counted before ordering and eager loads."""
    limit, offset = get_pagination(page, page_size)
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(stmt.options(*options).order_by(*order_by).limit(limit).offset(offset))
        .scalars()
        .all()
    )
    return list(rows), total, limit
