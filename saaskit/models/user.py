import enum
import uuid

from sqlalchemy import Enum, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saaskit.db import Base, TimestampMixin


class UserRole(str, enum.Enum):
    user = "user"
    premium = "premium"
    admin = "admin"


class User(TimestampMixin, Base):
    """Account row owned by the sign-in layer.

    Billing sync only reads it and keeps ``role`` in step with the user's
    subscriptions.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    image: Mapped[str | None] = mapped_column(String(512))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), default=UserRole.user)

    customer = relationship("Customer", back_populates="user", uselist=False)
