from typing import Optional
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from showsphere.db.base import Base
from showsphere.models import TimestampMixin


class User(Base, TimestampMixin):
    """Read-only copy of an identity-provider user."""
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    image: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
