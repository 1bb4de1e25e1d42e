"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from brandkit.core.database import Base
from brandkit.models.brand_kit import BrandKit

__all__ = ["Base", "BrandKit"]
