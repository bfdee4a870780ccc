"""
CRM records: contacts, products and suppliers.
"""

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, TenantOwnedMixin, TimestampMixin, iso
from .schemas import CRM_SCHEMA


class Contact(Base, TimestampMixin, TenantOwnedMixin):
    """A person the organization communicates with."""

    __tablename__ = "contacts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    firstname = Column(String(100), nullable=False)
    lastname = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    company = Column(String(255), nullable=True)
    position = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    personality_type = Column(String(50), nullable=True, comment="Detected personality profile")
    personality_notes = Column(Text, nullable=True)

    status = Column(String(20), default="active", nullable=False)
    last_contact = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_contacts_email", "email"),
        {"schema": CRM_SCHEMA},
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.firstname, self.lastname) if part)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "user_id": str(self.user_id),
            "firstname": self.firstname,
            "lastname": self.lastname,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "position": self.position,
            "notes": self.notes,
            "personality_type": self.personality_type,
            "personality_notes": self.personality_notes,
            "status": self.status,
            "last_contact": iso(self.last_contact),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Product(Base, TimestampMixin, TenantOwnedMixin):
    """Catalog product."""

    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Numeric(12, 2), nullable=True)
    stock = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("idx_products_name", "name"),
        {"schema": CRM_SCHEMA},
    )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "user_id": str(self.user_id),
            "name": self.name,
            "sku": self.sku,
            "description": self.description,
            "category": self.category,
            "price": float(self.price) if self.price is not None else None,
            "stock": self.stock,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Supplier(Base, TimestampMixin, TenantOwnedMixin):
    """Supplier with a 0-100 reliability score."""

    __tablename__ = "suppliers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    reliability_score = Column(Integer, default=50, nullable=False)

    __table_args__ = ({"schema": CRM_SCHEMA},)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "user_id": str(self.user_id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "website": self.website,
            "notes": self.notes,
            "reliability_score": self.reliability_score,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
