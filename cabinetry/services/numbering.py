from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session


def next_number(db: Session, column, prefix: str, today: Optional[date] = None) -> str:
    """
    Daily sequence numbers: QUO-20250131-0001, ORD-20250131-0002, ...
    The sequence restarts every day per prefix.
    """
    today = today or date.today()
    base = f"{prefix}-{today.strftime('%Y%m%d')}-"
    last = db.query(func.max(column)).filter(column.like(f"{base}%")).scalar()
    seq = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{base}{seq:04d}"
