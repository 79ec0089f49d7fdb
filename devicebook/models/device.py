from __future__ import annotations

from sqlalchemy import Boolean, Column, Date, Numeric, Text
from sqlalchemy.orm import relationship

from ..db.session import Base
from ..core.device_types import STATUS_SOLD


class Device(Base):
    """A single resold unit tracked from purchase through repair to sale.

    Money columns are stored as ``Numeric(10, 2)`` so they come back as
    ``Decimal``. ``sale_price`` stays NULL until the device is sold.
    """

    __tablename__ = "devices"

    id = Column(Text, primary_key=True)
    owner_user_id = Column(Text, nullable=False, index=True)

    model = Column(Text, nullable=False)
    storage = Column(Text, nullable=False)
    color = Column(Text, nullable=False)
    condition = Column(Text, nullable=False, default="USED")
    status = Column(Text, nullable=False, default="STOCK", index=True)
    imei = Column(Text, nullable=True, unique=True)

    purchase_date = Column(Date, nullable=False, index=True)
    repair_date = Column(Date, nullable=True)
    sale_date = Column(Date, nullable=True)
    shipping_buy_date = Column(Date, nullable=True)
    shipping_sell_date = Column(Date, nullable=True)

    purchase_price = Column(Numeric(10, 2), nullable=False, default=0)
    repair_cost = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_buy = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_sell = Column(Numeric(10, 2), nullable=False, default=0)
    sale_price = Column(Numeric(10, 2), nullable=True)
    sales_fees = Column(Numeric(10, 2), nullable=False, default=0)

    buyer_name = Column(Text, nullable=True)
    platform_order_number = Column(Text, nullable=True)
    sale_invoice_number = Column(Text, nullable=True)
    seller_name = Column(Text, nullable=True)

    is_diff_tax = Column(Boolean, nullable=False, default=True)
    defects = Column(Text, nullable=True)

    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    files = relationship(
        "DeviceFile",
        back_populates="device",
        cascade="all, delete-orphan",
        order_by="DeviceFile.id",
    )

    @property
    def is_sold(self) -> bool:
        return self.status == STATUS_SOLD

    @property
    def financials(self):
        # Imported lazily to keep models free of service imports at load time.
        from ..services.calculations import calculate_device_financials

        return calculate_device_financials(self)
