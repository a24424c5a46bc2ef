import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from autosync.api.deps import get_admin_auth, require_admin
from autosync.api.schemas import AdminLoginRequest, MessageResponse
from autosync.config import settings
from autosync.services.auth import SESSION_COOKIE, AdminAuth

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/admin/login", response_model=MessageResponse)
async def login(request: AdminLoginRequest, response: Response, auth: AdminAuth = Depends(get_admin_auth)):
    if not auth.verify_credentials(request.email, request.password):
        logger.warning(f"[AUTH] Failed admin login for {request.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    response.set_cookie(
        SESSION_COOKIE,
        auth.issue_token(),
        max_age=auth.max_age,
        httponly=True,
        samesite="strict",
        secure=settings.COOKIE_SECURE,
    )
    logger.info("[AUTH] Admin logged in")
    return MessageResponse(message="Logged in successfully")


@router.post("/admin/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="strict", secure=settings.COOKIE_SECURE)
    return MessageResponse(message="Logged out successfully")


@router.get("/admin/check", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def check():
    return MessageResponse(message="Authenticated")
