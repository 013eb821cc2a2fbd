from pydantic import BaseModel, HttpUrl, TypeAdapter
from datetime import datetime
from typing import List

# Тот же тип адреса для форм, что и для JSON API
long_url_adapter = TypeAdapter(HttpUrl)


class LinkCreate(BaseModel):
    long_url: HttpUrl


class LinkUpdate(BaseModel):
    long_url: HttpUrl


class LinkResponse(BaseModel):
    id: str
    long_url: str
    created_at: datetime
    total_visits: int = 0
    unique_visits: int = 0


class LinkListResponse(BaseModel):
    links: List[LinkResponse]
