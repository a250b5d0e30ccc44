from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from storefront.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)

    # Weak references: orders outlive the user and the product
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = Column(String(200), nullable=False)
    product_image = Column(String, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)

    customer_name = Column(String(120), nullable=False)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_location = Column(String, nullable=False)

    amount = Column(Float, default=0, nullable=False)
    shipping_method = Column(String(20), default="shipping", nullable=False)  # shipping | pickup
    shipping_cost = Column(Float, default=0, nullable=False)
    coupon_code = Column(String(50), nullable=True)
    discount_percent = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    subtotal = Column(Float, default=0, nullable=False)
    total_amount = Column(Float, default=0, nullable=False)
    payment_method = Column(String(20), default="card", nullable=False)  # card | cash | qr

    order_date = Column(DateTime(timezone=True), nullable=False)
    order_time = Column(String(20), nullable=True)
    delivery_date = Column(DateTime(timezone=True), nullable=False)
    delivery_time = Column(String(20), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending | in-progress | completed | cancelled

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    user = relationship("User")
    product = relationship("Product")
