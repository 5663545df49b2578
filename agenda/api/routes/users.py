# agenda/api/routes/users.py
from fastapi import APIRouter, Depends

from agenda.api.deps import get_auth_context, get_store, unwrap
from agenda.models.user import PasswordChange, ProfileUpdate, RolePayload
from agenda.services.user_approval import UserApprovalWorkflow

router = APIRouter()


@router.get("/pendientes")
async def list_pending(ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await UserApprovalWorkflow(store).list_pending(ctx))


@router.get("/activos")
async def list_active(ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await UserApprovalWorkflow(store).list_active(ctx))


@router.patch("/me")
async def update_my_profile(payload: ProfileUpdate, ctx=Depends(get_auth_context), store=Depends(get_store)):
    """Cualquier usuario autenticado (incluso pendiente) puede cambiar su nombre."""
    return unwrap(await UserApprovalWorkflow(store).update_own_name(ctx, payload.nombre_completo))


@router.post("/me/password")
async def change_my_password(payload: PasswordChange, ctx=Depends(get_auth_context), store=Depends(get_store)):
    unwrap(await UserApprovalWorkflow(store).change_own_password(ctx, payload.password))
    return {"ok": True}


@router.post("/{user_id}/aprobar")
async def approve(user_id: str, payload: RolePayload, ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await UserApprovalWorkflow(store).approve(ctx, user_id, payload.rol))


@router.post("/{user_id}/rechazar")
async def reject(user_id: str, ctx=Depends(get_auth_context), store=Depends(get_store)):
    unwrap(await UserApprovalWorkflow(store).reject(ctx, user_id))
    return {"ok": True}


@router.patch("/{user_id}/rol")
async def change_role(user_id: str, payload: RolePayload, ctx=Depends(get_auth_context), store=Depends(get_store)):
    return unwrap(await UserApprovalWorkflow(store).change_role(ctx, user_id, payload.rol))


@router.delete("/{user_id}")
async def delete_user(user_id: str, ctx=Depends(get_auth_context), store=Depends(get_store)):
    unwrap(await UserApprovalWorkflow(store).delete(ctx, user_id))
    return {"ok": True}
