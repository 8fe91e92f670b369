from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class MLMPosition(str, enum.Enum):
    ETT = "ETT"
    ETL = "ETL"
    MANAGER = "Manager"
    RC = "RC"
    RD = "RD"
    RVP = "RVP"
    SVP = "SVP"


class Vendor(Base):
    """Vendor (vendeur) and its place in the MLM sponsorship tree"""
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    code_vendeur = Column(String, unique=True, index=True, nullable=False)
    prenom = Column(String, nullable=True)
    nom = Column(String, nullable=True)
    email = Column(String, nullable=True)

    # MLM hierarchy - parent pointer to the sponsor
    parent_id = Column(Integer, ForeignKey("vendors.id"), nullable=True, index=True)
    position = Column(String, nullable=True)  # ETT, ETL, Manager, RC, RD, RVP, SVP or null for a plain CQ
    niveau = Column(Integer, default=1)

    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    parent = relationship("Vendor", remote_side=[id], back_populates="children")
    children = relationship("Vendor", back_populates="parent")
    clients = relationship("Client", back_populates="vendor")

    @property
    def full_name(self) -> str:
        return f"{self.prenom or ''} {self.nom or ''}".strip()
