"""
OLKA Mağaza Backoffice - Bekleme Süresi
Havuzdaki müşteri ve görevler için okunabilir süre metni
"""

from datetime import datetime
from typing import Optional


def format_waiting_time(start: datetime, now: Optional[datetime] = None) -> str:
    """
    start -> now arası süreyi metne çevir.
    1 gün ve üzeri "N gün", 1 saat ve üzeri "H:MM saat", aksi halde "M:SS dk".
    """
    if now is None:
        now = datetime.utcnow()

    seconds = int((now - start).total_seconds())
    if seconds < 0:
        seconds = 0

    days, remainder = divmod(seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)

    if days >= 1:
        return f"{days} gün"
    if hours >= 1:
        return f"{hours}:{minutes:02d} saat"
    return f"{minutes}:{secs:02d} dk"
