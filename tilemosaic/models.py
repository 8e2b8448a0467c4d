from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class TileUsageStat(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    provider: str = Field(index=True, unique=True)
    request_count: int = Field(default=0, description="Tiles requested from the provider")
    failure_count: int = Field(default=0, description="Tiles that could not be retrieved")
    last_used_at: Optional[datetime] = Field(default=None)

    @property
    def success_rate(self) -> float | None:
        if self.request_count <= 0:
            return None
        return (self.request_count - self.failure_count) / self.request_count
