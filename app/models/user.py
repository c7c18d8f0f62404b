from sqlalchemy import Column, DateTime, Integer, String

from app.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored lower-cased so uniqueness is case-insensitive.
    email = Column(String(320), nullable=False, unique=True, index=True)
    username = Column(String(150), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)

    auth_provider = Column(String(64), nullable=False, default="email")
    provider_id = Column(String(255), nullable=True, index=True)
    # Absent for federated sign-ins.
    password_hash = Column(String(255), nullable=True)

    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
