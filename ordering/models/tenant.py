from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from ordering.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(80), unique=True, index=True, nullable=False)
    custom_domain = Column(String(255), unique=True, index=True, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Metadados exibidos no recibo
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(30), nullable=True)
    brand_color = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
