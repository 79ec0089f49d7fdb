from __future__ import annotations

from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import relationship

from ..db.session import Base


class DeviceFile(Base):
    """Metadata for a document stored alongside a device.

    The bytes live in the storage backend under ``file_path``; only one
    EIGENBELEG row may exist per device.
    """

    __tablename__ = "device_files"
    __table_args__ = (
        Index(
            "ux_device_files_eigenbeleg",
            "device_id",
            unique=True,
            sqlite_where=text("category = 'EIGENBELEG'"),
            postgresql_where=text("category = 'EIGENBELEG'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Text, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_user_id = Column(Text, nullable=False, index=True)

    file_name = Column(Text, nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_type = Column(Text, nullable=True)
    category = Column(Text, nullable=False, default="OTHER")

    created_at = Column(Text, nullable=False)

    device = relationship("Device", back_populates="files")
