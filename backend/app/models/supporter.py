from sqlalchemy import Column, DateTime, Integer, String, func
from app.db.base import Base

class Supporter(Base):
    __tablename__ = "supporters"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    title = Column(String(200), nullable=False)
    photo = Column(String(500), nullable=True)
    order = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
