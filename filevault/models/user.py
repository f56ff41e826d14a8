from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from filevault.database import Base
from filevault.models.base import IntIdMixin, TimestampMixin


class User(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    files: Mapped[list["File"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
