from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from ordering.core.database import Base


class ComboType(Base):
    __tablename__ = "combo_types"

    id = Column(Integer, primary_key=True)
    # NULL = combo global, visível para todos os tenants
    tenant_id = Column(Integer, ForeignKey("tenants.id"), index=True, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    base_price_cents = Column(Integer, nullable=False)
    base_item_count = Column(Integer, nullable=False)
    additional_item_price_cents = Column(Integer, nullable=True)
    included_side_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
