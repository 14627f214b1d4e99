"""Shared request dependencies."""
from __future__ import annotations

import math
from typing import Optional

from fastapi import Header, Query


class PageParams:
    """`page`/`limit` query parameters (1-based page)."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination(params: PageParams, total: int) -> dict[str, int]:
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "pages": math.ceil(total / params.limit),
    }


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> Optional[str]:
    """Staff id recorded on audit entries; sessions are handled upstream of this API."""
    return x_actor_id or None
