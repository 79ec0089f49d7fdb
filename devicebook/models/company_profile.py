from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base


class CompanyProfile(Base):
    """The reseller's own business identity; one row per owning account."""

    __tablename__ = "company_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)

    company_name = Column(Text, nullable=False)
    owner_name = Column(Text, nullable=False)
    street = Column(Text, nullable=False)
    house_number = Column(Text, nullable=False)
    postal_code = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    country = Column(Text, nullable=False, default="Deutschland")

    vat_id = Column(Text, nullable=True)
    tax_id = Column(Text, nullable=True)

    email = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)

    # Either an http(s) URL or a storage key under the owner's folder.
    logo_url = Column(Text, nullable=True)

    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    @property
    def address_lines(self) -> list[str]:
        return [
            self.owner_name,
            self.company_name,
            f"{self.street} {self.house_number}".strip(),
            f"{self.postal_code} {self.city}".strip(),
        ]
