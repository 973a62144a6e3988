import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String

from research_tasks.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    GUEST = "guest"
    USER = "user"
    SUPPORTER = "supporter"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        # guest and user share the lowest tier
        return _ROLE_RANK[self]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {
    Role.GUEST: 0,
    Role.USER: 0,
    Role.SUPPORTER: 1,
    Role.ADMIN: 2,
}


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)     # NULL for provider-managed accounts
    external_id = Column(String, unique=True, nullable=True)  # identity-provider subject (e.g. Firebase uid)
    role = Column(
        Enum(Role, name="user_role", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.USER,
    )
    profile_complete = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
