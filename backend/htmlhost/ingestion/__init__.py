from .pipeline import IngestionPipeline
from .schemas import UpdateOptions, UploadOptions
from .slugs import SlugAllocator

__all__ = ["IngestionPipeline", "SlugAllocator", "UpdateOptions", "UploadOptions"]
