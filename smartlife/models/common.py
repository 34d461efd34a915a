from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel

DataT = TypeVar("DataT")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Envelope(BaseModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None


class Page(BaseModel, Generic[DataT]):
    success: bool = True
    data: List[DataT]
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str
