"""
Restaurant (tenant) and role membership models.
"""
import uuid
from sqlalchemy import Column, String, DateTime, func, ForeignKey, Uuid, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship

from src.core.local_time import utcnow
from src.db.base import Base

ROLES = (
    "owner",
    "manager",
    "chef",
    "staff",
    "collaborator_accountant",
    "collaborator_inventory",
    "collaborator_chef",
)
ELEVATED_ROLES = ("owner", "manager")


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    # IANA zone; NULL falls back to DEFAULT_RESTAURANT_TIMEZONE
    timezone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    memberships = relationship("UserRestaurant", back_populates="restaurant", cascade="all, delete-orphan")
    pos_connections = relationship("PosConnection", back_populates="restaurant", cascade="all, delete-orphan")


class UserRestaurant(Base):
    """A user's role in a restaurant. The role-membership table consumed by access control."""
    __tablename__ = "user_restaurants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=False, default="staff")
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="memberships")
    restaurant = relationship("Restaurant", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint('user_id', 'restaurant_id', name='uq_user_restaurants_user_restaurant'),
        CheckConstraint(
            "role IN ('owner', 'manager', 'chef', 'staff', 'collaborator_accountant', "
            "'collaborator_inventory', 'collaborator_chef')",
            name='ck_user_restaurants_role',
        ),
        Index('idx_user_restaurants_restaurant', 'restaurant_id'),
    )
