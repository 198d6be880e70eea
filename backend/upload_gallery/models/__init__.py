"""Import all models so SQLAlchemy metadata knows about them."""
from upload_gallery.models.base import Base
from upload_gallery.models.file_record import FileRecord, STATUS_PENDING, STATUS_STORED

__all__ = ["Base", "FileRecord", "STATUS_PENDING", "STATUS_STORED"]
