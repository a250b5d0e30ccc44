from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from storefront.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    sku = Column(String(64), unique=True, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    brand = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    # stock only changes through storefront.services.inventory
    stock = Column(Integer, default=0, nullable=False)
    in_stock = Column(Boolean, default=True, nullable=False)

    original_price = Column(Float, nullable=False)
    discount = Column(Float, default=0, nullable=False)
    price = Column(Float, nullable=False)
    rating = Column(Float, default=0, nullable=False)
    is_new = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active | inactive | draft
    images = Column(JSON, default=list, nullable=False)
    badges = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    category = relationship("Category")
