import math
from dataclasses import dataclass
from typing import Optional

from fastapi import Query

from .models import CustomModel

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _parse_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    # 0 counts as "not given", like a falsy parse
    return value or default


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def clamp(cls, page: Optional[str] = None, limit: Optional[str] = None) -> "PageParams":
        """page >= 1 and 1 <= limit <= 100; unparsable values fall back to the defaults."""
        parsed_page = max(_parse_int(page, 1), 1)
        parsed_limit = min(max(_parse_int(limit, DEFAULT_LIMIT), 1), MAX_LIMIT)
        return cls(page=parsed_page, limit=parsed_limit)


def page_params(page: Optional[str] = Query(None), limit: Optional[str] = Query(None)) -> PageParams:
    return PageParams.clamp(page, limit)


class Pagination(CustomModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, params: PageParams, total: int) -> "Pagination":
        return cls(
            page=params.page,
            limit=params.limit,
            total=total,
            pages=max(math.ceil(total / params.limit), 1),
        )
