from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from services.db import Base

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    # Studio staff manage galleries; everyone else is a client
    is_photographer = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<User(email='{self.email}', active={self.is_active}, photographer={self.is_photographer})>"

class ClientProfile(Base):
    """
    Business-side record of a studio client, one per user account.
    Gallery grants are issued to the profile, not to the user.
    """
    __tablename__ = "client_profiles"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False, index=True)
    phone_number = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    notes = Column(Text, nullable=False, default="")
    created_date = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ClientProfile(id={self.id}, user_id={self.user_id})>"
