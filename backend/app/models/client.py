from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class ClientStatus(str, enum.Enum):
    PROSPECT = "prospect"
    SIGNATURE = "signature"
    VALIDATION = "validation"
    POST_PRODUCTION = "post_production"
    INSTALLATION = "installation"
    RESILIATION = "resiliation"
    ABANDONNE = "abandonne"


class Client(Base):
    """CRM client record. Installed clients are the unit that earns points."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)

    # Owning vendor
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    # Identity
    prenom = Column(String, nullable=True)
    nom = Column(String, nullable=True)
    email = Column(String, nullable=True)
    telephone = Column(String, nullable=True)

    # Offer
    produit = Column(String, nullable=True, index=True)  # "Freebox Pop", "Forfait 5G", ...

    # Status
    status = Column(String, default="prospect", nullable=False, index=True)

    # Key dates
    acquisition_date = Column(Date, nullable=True)  # Signature of the contract
    installation_date = Column(Date, nullable=True, index=True)  # Drives the CVD month

    notes = Column(Text, nullable=True)

    # Soft delete
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    vendor = relationship("Vendor", back_populates="clients")
