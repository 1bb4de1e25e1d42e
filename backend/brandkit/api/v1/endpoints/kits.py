"""Brand kit API endpoints.

- POST   /api/v1/kits - Generate a new kit
- GET    /api/v1/kits - List the owner's kits
- GET    /api/v1/kits/{kit_id} - Rendered kit
- PATCH  /api/v1/kits/{kit_id} - Edit profile and/or constraints
- DELETE /api/v1/kits/{kit_id} - Delete a kit
- POST   /api/v1/kits/{kit_id}/core - Autofill profile and constraints
- POST   /api/v1/kits/{kit_id}/voice - Generate voice suggestions
- POST   /api/v1/kits/{kit_id}/assets - Campaign and caption pack actions
- GET    /api/v1/kits/{kit_id}/campaigns - List campaigns
- GET    /api/v1/kits/{kit_id}/campaigns/{campaign_id} - One campaign
- POST   /api/v1/kits/{kit_id}/campaigns/{campaign_id}/intelligence - Brief actions
- GET    /api/v1/kits/{kit_id}/diagnostics - Why a kit does or does not render

Service errors are returned as {"ok": false, "error", "code", "request_id"}.
4xx are logged at WARNING, 5xx at ERROR.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from brandkit.core.auth import UserInfo, get_current_user
from brandkit.core.database import get_session
from brandkit.core.logging import get_logger
from brandkit.integrations.claude import ClaudeClient, get_claude
from brandkit.schemas.kits import (
    ActionResponse,
    AssetActionRequest,
    CampaignListResponse,
    CampaignResponse,
    CreateKitRequest,
    ErrorResponse,
    IntelligenceActionRequest,
    IntelligenceResponse,
    KitDetail,
    KitDiagnosticsResponse,
    KitListResponse,
    KitResponse,
    KitSummary,
    UpdateKitRequest,
    VoiceResponse,
)
from brandkit.services.brand_kit import BrandKitService, BrandKitServiceError, KitView
from brandkit.services.generation import BrandKitGenerator

logger = get_logger(__name__)

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Missing owner"},
    404: {"model": ErrorResponse, "description": "Kit or campaign not found"},
    409: {"model": ErrorResponse, "description": "Concurrent write detected"},
    500: {"model": ErrorResponse, "description": "Generation failed"},
}


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


async def get_brand_kit_service(
    session: AsyncSession = Depends(get_session),
    claude: ClaudeClient = Depends(get_claude),
) -> BrandKitService:
    return BrandKitService(session, BrandKitGenerator(claude))


def _error_response(request: Request, error: BrandKitServiceError, kit_id: str | None) -> JSONResponse:
    request_id = _get_request_id(request)
    extra = {
        "request_id": request_id,
        "kit_id": kit_id,
        "error_code": error.code,
        "error_message": error.message,
        "status_code": error.status_code,
    }
    if error.status_code >= 500:
        logger.error("Brand kit request failed", extra=extra, exc_info=error.__cause__ is not None)
    else:
        logger.warning("Brand kit request rejected", extra=extra)
    return JSONResponse(
        status_code=error.status_code,
        content={
            "ok": False,
            "error": error.message,
            "code": error.code,
            "request_id": request_id,
        },
    )


def _to_summary(view: KitView) -> KitSummary:
    return KitSummary(
        id=view.id,
        mode=view.mode,
        business=view.business,
        vibe=view.vibe,
        name=view.profile.name or None,
        primary=view.palette.primary if view.palette else None,
        valid=view.valid,
        version=view.meta.version,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


def _to_detail(view: KitView) -> KitDetail:
    return KitDetail(
        id=view.id,
        mode=view.mode,
        business=view.business,
        vibe=view.vibe,
        created_at=view.created_at,
        updated_at=view.updated_at,
        palette=view.palette,
        profile=view.profile,
        voice_ai=view.voice,
        meta=view.meta,
        campaigns=view.campaigns,
    )


@router.post(
    "",
    response_model=KitResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a brand kit",
    responses=ERROR_RESPONSES,
)
async def create_kit(
    request: Request,
    data: CreateKitRequest,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> KitResponse | JSONResponse:
    logger.debug(
        "Create kit request",
        extra={"request_id": _get_request_id(request), "mode": data.mode},
    )
    try:
        view = await service.create_kit(
            owner_id=user.id,
            mode=data.mode,
            business=data.business,
            vibe=data.vibe,
            primary=data.primary,
            secondary=data.secondary,
        )
    except BrandKitServiceError as e:
        return _error_response(request, e, None)

    logger.info(
        "Brand kit generated",
        extra={"request_id": _get_request_id(request), "kit_id": view.id},
    )
    return KitResponse(kit=_to_detail(view))


@router.get("", response_model=KitListResponse, summary="List brand kits")
async def list_kits(
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> KitListResponse:
    views = await service.list_kits(user.id)
    return KitListResponse(kits=[_to_summary(view) for view in views])


@router.get(
    "/{kit_id}",
    response_model=KitResponse,
    response_model_exclude_none=True,
    summary="Get a brand kit",
    responses=ERROR_RESPONSES,
)
async def get_kit(
    request: Request,
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> KitResponse | JSONResponse:
    try:
        view = await service.get_kit(kit_id, user.id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return KitResponse(kit=_to_detail(view))


@router.patch(
    "/{kit_id}",
    response_model=ActionResponse,
    response_model_exclude_none=True,
    summary="Edit profile and constraints",
    responses=ERROR_RESPONSES,
)
async def update_kit(
    request: Request,
    kit_id: str,
    data: UpdateKitRequest,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> ActionResponse | JSONResponse:
    fields = {key: getattr(data, key) for key in data.model_fields_set}
    try:
        version = await service.update_profile(kit_id, user.id, fields)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return ActionResponse(version=version)


@router.delete(
    "/{kit_id}",
    response_model=ActionResponse,
    response_model_exclude_none=True,
    summary="Delete a brand kit",
    responses=ERROR_RESPONSES,
)
async def delete_kit(
    request: Request,
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> ActionResponse | JSONResponse:
    try:
        await service.delete_kit(kit_id, user.id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)

    logger.info(
        "Brand kit deleted",
        extra={"request_id": _get_request_id(request), "kit_id": kit_id},
    )
    return ActionResponse()


@router.post(
    "/{kit_id}/core",
    response_model=ActionResponse,
    response_model_exclude_none=True,
    summary="Autofill brand core",
    responses=ERROR_RESPONSES,
)
async def autofill_core(
    request: Request,
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> ActionResponse | JSONResponse:
    try:
        version = await service.autofill_core(kit_id, user.id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return ActionResponse(version=version)


@router.post(
    "/{kit_id}/voice",
    response_model=VoiceResponse,
    summary="Generate voice suggestions",
    responses=ERROR_RESPONSES,
)
async def generate_voice(
    request: Request,
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> VoiceResponse | JSONResponse:
    try:
        voice = await service.generate_voice(kit_id, user.id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return VoiceResponse(voice_ai=voice)


@router.post(
    "/{kit_id}/assets",
    response_model=ActionResponse,
    response_model_exclude_none=True,
    summary="Campaign and caption pack actions",
    responses=ERROR_RESPONSES,
)
async def asset_action(
    request: Request,
    kit_id: str,
    data: AssetActionRequest,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> ActionResponse | JSONResponse:
    body = data.model_dump()
    logger.debug(
        "Asset action request",
        extra={
            "request_id": _get_request_id(request),
            "kit_id": kit_id,
            "action": body.get("action") or body.get("type"),
        },
    )
    try:
        result = await service.handle_asset_action(kit_id, user.id, body)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)

    logger.info(
        "Asset action completed",
        extra={
            "request_id": _get_request_id(request),
            "kit_id": kit_id,
            "action": result.action,
            "campaign_id": result.campaign_id,
            "item_id": result.item_id,
            "version": result.version,
        },
    )
    return ActionResponse(
        version=result.version,
        campaign_id=result.campaign_id,
        item_id=result.item_id,
    )


@router.get(
    "/{kit_id}/campaigns",
    response_model=CampaignListResponse,
    response_model_exclude_none=True,
    summary="List campaigns",
    responses=ERROR_RESPONSES,
)
async def list_campaigns(
    request: Request,
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> CampaignListResponse | JSONResponse:
    try:
        campaigns = await service.list_campaigns(kit_id, user.id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return CampaignListResponse(campaigns=campaigns)


@router.get(
    "/{kit_id}/campaigns/{campaign_id}",
    response_model=CampaignResponse,
    response_model_exclude_none=True,
    summary="Get a campaign",
    responses=ERROR_RESPONSES,
)
async def get_campaign(
    request: Request,
    kit_id: str,
    campaign_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> CampaignResponse | JSONResponse:
    try:
        campaign = await service.get_campaign(kit_id, user.id, campaign_id)
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)
    return CampaignResponse(campaign=campaign)


@router.post(
    "/{kit_id}/campaigns/{campaign_id}/intelligence",
    response_model=IntelligenceResponse,
    summary="Generate or edit the campaign brief",
    responses=ERROR_RESPONSES,
)
async def intelligence_action(
    request: Request,
    kit_id: str,
    campaign_id: str,
    data: IntelligenceActionRequest,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> IntelligenceResponse | JSONResponse:
    try:
        intelligence = await service.handle_intelligence_action(
            kit_id, user.id, campaign_id, data.model_dump()
        )
    except BrandKitServiceError as e:
        return _error_response(request, e, kit_id)

    logger.info(
        "Campaign intelligence updated",
        extra={
            "request_id": _get_request_id(request),
            "kit_id": kit_id,
            "campaign_id": campaign_id,
            "source": intelligence.source,
        },
    )
    return IntelligenceResponse(intelligence=intelligence)


@router.get(
    "/{kit_id}/diagnostics",
    response_model=KitDiagnosticsResponse,
    summary="Diagnose kit visibility",
)
async def diagnose_kit(
    kit_id: str,
    user: UserInfo = Depends(get_current_user),
    service: BrandKitService = Depends(get_brand_kit_service),
) -> KitDiagnosticsResponse:
    diagnosis = await service.diagnose_kit(kit_id, user.id)
    return KitDiagnosticsResponse(
        id=diagnosis.id,
        found=diagnosis.found,
        match=diagnosis.match,
        valid=diagnosis.valid,
        reason=diagnosis.reason,
    )
