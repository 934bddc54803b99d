from sqlalchemy import BigInteger, Column, DateTime, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.types import utcnow


class Project(Base):
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String(100), nullable=False)
    image_url = Column(String(500), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    deployments = relationship("Deployment", back_populates="project")
