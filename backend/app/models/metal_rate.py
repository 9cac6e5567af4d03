from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class MetalRate(Base):
    __tablename__ = "metal_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    metal_type: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)  # 22KT, 18KT, Silver...
    rate_per_ten_grams: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    making_charge_per_gram: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gst_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("3"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now(), nullable=True)
