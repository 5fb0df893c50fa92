"""
Utilidades centralizadas para manejo de fechas y timestamps.

Convención del sistema:
- La semana actual se detecta con la fecha **local** de la zona configurada
  (settings.TIMEZONE), igual que la ve el agricultor en campo.
- La fecha del archivo exportado es la fecha **UTC** del momento de exportar.
- Los ids de registro son milisegundos desde epoch (UTC).
"""
from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo

from kuaagro.config.settings import settings


def local_tz(tz_name: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz_name or settings.TIMEZONE)


def now_utc() -> datetime:
    """
    Retorna el datetime actual en UTC (aware).
    """
    return datetime.now(timezone.utc)


def today_local(tz_name: str | None = None) -> date:
    """
    Retorna la fecha actual (date) en la zona horaria configurada.
    """
    return datetime.now(local_tz(tz_name)).date()


def to_utc_date(dt: datetime) -> date:
    """
    Fecha UTC de un datetime. Un datetime naive se interpreta como UTC.
    """
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(timezone.utc).date()


def now_millis() -> int:
    """
    Timestamp actual en milisegundos.
    """
    return int(now_utc().timestamp() * 1000)
