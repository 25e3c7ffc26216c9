"""
Geofence management routes
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.models import get_db, Geofence, AuditAction
from fleetwatch.schemas import (
    Actor, GeofenceDraft, GeofenceResponse, GeofenceListResponse,
    GeofenceCheckRequest, GeofenceCheckResponse
)
from fleetwatch.core.security import require_authenticated, require_geofence_editor
from fleetwatch.services import audit_service, geofence_service
from fleetwatch.services.geofence_authorization import assemble_geofence
from fleetwatch.services.visibility_scope import ListingFilter, can_edit

router = APIRouter(tags=["Geofence Management"])


def to_response(geofence: Geofence, actor: Actor) -> GeofenceResponse:
    response = GeofenceResponse.model_validate(geofence)
    response.permission = "editable" if can_edit(actor, geofence) else "readonly"
    return response


async def get_visible_or_404(db: AsyncSession, actor: Actor, geofence_id: str) -> Geofence:
    geofence = await geofence_service.get_visible(db, actor, geofence_id)
    if not geofence:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Geofence not found"
        )
    return geofence


@router.get("/geofences", response_model=GeofenceListResponse)
async def list_geofences(
    filter: ListingFilter = ListingFilter.ALL,
    client_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_actor: Actor = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    List the geofences visible to the current user.
    own: created by me; assigned: shared with me; all: both.
    """
    geofences = await geofence_service.list_visible(
        db, current_actor, listing=filter, client_id=client_id, is_active=is_active
    )

    return GeofenceListResponse(
        geofences=[to_response(g, current_actor) for g in geofences],
        total=len(geofences)
    )


@router.get("/geofences/{geofence_id}", response_model=GeofenceResponse)
async def get_geofence(
    geofence_id: str,
    current_actor: Actor = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a specific geofence by ID.
    """
    geofence = await get_visible_or_404(db, current_actor, geofence_id)
    return to_response(geofence, current_actor)


async def _create(
    draft: GeofenceDraft,
    request: Request,
    actor: Actor,
    db: AsyncSession,
    explicit_client_id: Optional[str] = None,
) -> GeofenceResponse:
    payload = assemble_geofence(
        draft.geometry, draft.fields, actor,
        explicit_client_id=explicit_client_id,
        visibility=draft.visibility,
    )
    geofence = await geofence_service.create(db, actor, payload)

    await audit_service.log_geofence_action(
        db=db,
        action=AuditAction.GEOFENCE_CREATE,
        actor=actor,
        request=request,
        geofence=geofence,
        description=f"Created geofence '{geofence.name}'"
    )

    await db.commit()
    await db.refresh(geofence)

    return to_response(geofence, actor)


@router.post("/geofences", response_model=GeofenceResponse, status_code=status.HTTP_201_CREATED)
async def create_geofence(
    draft: GeofenceDraft,
    request: Request,
    current_actor: Actor = Depends(require_geofence_editor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new geofence from the editor output and form fields.
    """
    return await _create(draft, request, current_actor, db)


@router.post(
    "/clients/{client_id}/geofences",
    response_model=GeofenceResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_client_geofence(
    client_id: str,
    draft: GeofenceDraft,
    request: Request,
    current_actor: Actor = Depends(require_geofence_editor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a geofence from a client's screen; it is always assigned to that client.
    """
    return await _create(draft, request, current_actor, db, explicit_client_id=client_id)


@router.put("/geofences/{geofence_id}", response_model=GeofenceResponse)
async def update_geofence(
    geofence_id: str,
    draft: GeofenceDraft,
    request: Request,
    current_actor: Actor = Depends(require_geofence_editor),
    db: AsyncSession = Depends(get_db)
):
    """
    Replace a geofence's geometry and settings.
    """
    geofence = await get_visible_or_404(db, current_actor, geofence_id)
    if not can_edit(current_actor, geofence):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to edit this geofence"
        )

    # Client-bound editors keep the geofence in its current organisation
    explicit_client_id = None if current_actor.is_superuser else geofence.client_id
    payload = assemble_geofence(
        draft.geometry, draft.fields, current_actor,
        explicit_client_id=explicit_client_id,
        visibility=draft.visibility,
        geofence_id=geofence.id,
    )
    changes = await geofence_service.update(db, current_actor, geofence, payload)

    if changes:
        await audit_service.log_geofence_action(
            db=db,
            action=AuditAction.GEOFENCE_UPDATE,
            actor=current_actor,
            request=request,
            geofence=geofence,
            description=f"Updated geofence '{geofence.name}'",
            details=changes
        )

    await db.commit()
    await db.refresh(geofence)

    return to_response(geofence, current_actor)


@router.delete("/geofences/{geofence_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_geofence(
    geofence_id: str,
    request: Request,
    current_actor: Actor = Depends(require_geofence_editor),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a geofence (soft delete).
    """
    geofence = await get_visible_or_404(db, current_actor, geofence_id)
    if not can_edit(current_actor, geofence):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to delete this geofence"
        )

    await audit_service.log_geofence_action(
        db=db,
        action=AuditAction.GEOFENCE_DELETE,
        actor=current_actor,
        request=request,
        geofence=geofence,
        description=f"Deleted geofence '{geofence.name}'"
    )

    await geofence_service.soft_delete(db, geofence)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/geofences/{geofence_id}/check", response_model=GeofenceCheckResponse)
async def check_point_in_geofence(
    geofence_id: str,
    check_data: GeofenceCheckRequest,
    current_actor: Actor = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db)
):
    """
    Check if a point is inside a specific geofence.
    """
    geofence = await get_visible_or_404(db, current_actor, geofence_id)

    is_inside, distance = await geofence_service.check_point_in_geofence(
        geofence, check_data.latitude, check_data.longitude
    )

    return GeofenceCheckResponse(
        inside=is_inside,
        geofence_id=geofence.id,
        geofence_name=geofence.name,
        distance_from_center=distance
    )
