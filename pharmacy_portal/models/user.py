import enum
from sqlalchemy import Column, Integer, String, Boolean, Enum
from sqlalchemy.orm import relationship

from pharmacy_portal.db.base import Base


class UserRole(str, enum.Enum):
    """Roles granted to portal accounts"""
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"
    CHECKER = "CHECKER"
    SHIPPING = "SHIPPING"
    INVENTORY = "INVENTORY"


class User(Base):
    """Portal account"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.USER)
    is_active = Column(Boolean, nullable=False, default=True)

    pacs = relationship("Pac", back_populates="user", cascade="all, delete-orphan")
