"""Services layer - Business logic and orchestration.

Services coordinate between repositories, integrations, and other services
to implement business use cases. Document shape rules live in the pure
modules (kit_document, caption_pack, campaign_brief) so they can be used
without a database.
"""

from brandkit.services.brand_kit import (
    AssetActionResult,
    BrandKitConflictError,
    BrandKitGenerationError,
    BrandKitNotFoundError,
    BrandKitService,
    BrandKitServiceError,
    BrandKitValidationError,
    CampaignNotFoundError,
    KitDiagnosis,
    KitView,
)
from brandkit.services.generation import BrandKitGenerator, GenerationError

__all__ = [
    "AssetActionResult",
    "BrandKitConflictError",
    "BrandKitGenerationError",
    "BrandKitGenerator",
    "BrandKitNotFoundError",
    "BrandKitService",
    "BrandKitServiceError",
    "BrandKitValidationError",
    "CampaignNotFoundError",
    "GenerationError",
    "KitDiagnosis",
    "KitView",
]
