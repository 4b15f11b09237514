from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from ordering.core.database import Base

ROLE_ENTREE = "ENTREE"


class ComboAvailability(Base):
    __tablename__ = "combo_availability"
    __table_args__ = (
        UniqueConstraint("combo_type_id", "menu_item_id", name="uq_combo_availability_item"),
    )

    id = Column(Integer, primary_key=True)
    combo_type_id = Column(Integer, ForeignKey("combo_types.id"), index=True, nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), index=True, nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_ENTREE)
    display_order = Column(Integer, nullable=False, default=0)
