from sqlalchemy import Column, DateTime, Integer, String, func

from storefront.core.database import Base


class Banner(Base):
    __tablename__ = "banners"

    id = Column(Integer, primary_key=True)
    image = Column(String, nullable=False)
    days = Column(Integer, nullable=False)
    requested_date = Column(DateTime(timezone=True), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    link = Column(String, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending | active | expired | inactive
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
