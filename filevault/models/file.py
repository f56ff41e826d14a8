from sqlalchemy import String, BigInteger, Boolean, ForeignKey, Index, false
from sqlalchemy.orm import Mapped, mapped_column, relationship
from filevault.database import Base
from filevault.models.base import IntIdMixin, TimestampMixin


class File(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "files"

    filename: Mapped[str] = mapped_column(String(255), nullable=False)       # name on disk
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)  # name the user uploaded
    file_path: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)

    user: Mapped["User"] = relationship(back_populates="files")

    __table_args__ = (
        Index("ix_files_user_id", "user_id"),
        Index("ix_files_user_created_at", "user_id", "created_at"),
    )
