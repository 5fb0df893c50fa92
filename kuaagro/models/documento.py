# models/documento.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from kuaagro.models.base import Base
from kuaagro.utils.datetime_utils import now_utc


class Documento(Base):
    """Un documento por ruta lógica; el contenido se sobrescribe completo en cada escritura."""
    __tablename__ = "documento"

    ruta: Mapped[str] = mapped_column(String(255), primary_key=True)
    contenido: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
