"""FileRecord model - file metadata (actual bytes live in the object store)."""
from sqlalchemy import Integer, String, BigInteger
from sqlalchemy.orm import Mapped, mapped_column
from upload_gallery.models.base import Base, UploadedAtMixin

STATUS_PENDING = "pending"
STATUS_STORED = "stored"


class FileRecord(Base, UploadedAtMixin):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Null until the blob is written and confirmed.
    url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    # Not unique: a pending row may share its key with a stored one until the
    # store rejects the duplicate write.
    storage_key: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING)
