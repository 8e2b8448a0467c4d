from __future__ import annotations

from datetime import UTC, datetime
from typing import Dict, List

from sqlmodel import Session, select

from .. import database
from ..models import TileUsageStat


_usage_initialized = False


def _ensure_usage_table() -> None:
    global _usage_initialized
    if not _usage_initialized:
        database.init_db()
        _usage_initialized = True


def record_tile_usage(provider: str, *, requested: int, failed: int = 0) -> None:
    """Add ``requested`` tile fetches, ``failed`` of them unsuccessful, to ``provider``."""

    if requested <= 0:
        return

    failed = min(max(0, failed), requested)
    _ensure_usage_table()

    with database.session_scope() as session:
        statement = select(TileUsageStat).where(TileUsageStat.provider == provider)
        usage = session.exec(statement).one_or_none()
        now = datetime.now(UTC)
        if usage is None:
            usage = TileUsageStat(
                provider=provider,
                request_count=requested,
                failure_count=failed,
                last_used_at=now,
            )
            session.add(usage)
        else:
            usage.request_count += requested
            usage.failure_count += failed
            usage.last_used_at = now
        session.commit()


def usage_summary(session: Session) -> List[Dict[str, object]]:
    statement = select(TileUsageStat).order_by(TileUsageStat.provider)
    stats = session.exec(statement).all()
    return [
        {
            "provider": stat.provider,
            "request_count": stat.request_count,
            "failure_count": stat.failure_count,
            "success_rate": stat.success_rate,
            "last_used_at": stat.last_used_at,
        }
        for stat in stats
    ]
