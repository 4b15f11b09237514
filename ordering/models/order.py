from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from ordering.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), index=True, nullable=False)
    order_number = Column(String(32), unique=True, index=True, nullable=False)

    # Cliente
    customer_email = Column(String(255), nullable=False)
    customer_first_name = Column(String(120), nullable=False)
    customer_last_name = Column(String(120), nullable=False)
    customer_phone = Column(String(30), nullable=False)
    customer_address = Column(Text, nullable=True)

    order_type = Column(String(20), nullable=False)  # pickup / delivery
    payment_method = Column(String(30), nullable=False)  # card / card_on_arrival / cash_on_arrival
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_reference = Column(String(255), nullable=True)

    # Valores em centavos
    subtotal_cents = Column(Integer, nullable=False)
    tax_cents = Column(Integer, nullable=False, default=0)
    delivery_fee_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
