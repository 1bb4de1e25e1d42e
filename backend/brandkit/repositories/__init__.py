"""Repositories layer - Data access and persistence.

Repositories handle all database operations using SQLAlchemy.
They abstract the database implementation from the service layer.
"""

from brandkit.repositories.brand_kit import BrandKitRepository

__all__ = ["BrandKitRepository"]
