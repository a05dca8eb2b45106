"""分页响应封装"""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class PageMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    size: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    """{data, meta: {page, size, total, totalPages}}"""

    data: list[T]
    meta: PageMeta

    @classmethod
    def build(cls, data: list[T], page: int, size: int, total: int) -> "Page[T]":
        return cls(
            data=data,
            meta=PageMeta(
                page=page,
                size=size,
                total=total,
                total_pages=math.ceil(total / size) if size else 0,
            ),
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
