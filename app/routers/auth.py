from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.models.user import User
from app.schemas.user import LoginIn, TokenOut, UserOut
from app.core.security import verify_password, create_access_token
from app.core.auth import get_current_user
from app.core.timeutil import now_naive


router = APIRouter(prefix="/auth", tags=["auth"])


def get_client_ip(req: Request) -> str:
    xff = req.headers.get("X-Forwarded-For") or req.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return req.client.host if req.client else ""


@router.post("/login", response_model=TokenOut)
async def login(data: LoginIn, request: Request, session: AsyncSession = Depends(get_session)):
    u = await session.scalar(select(User).where(User.username == data.username))
    if not u or not verify_password(data.password, u.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="wrong username or password")
    if u.status != 1:
        raise HTTPException(status_code=403, detail="user disabled")

    u.last_login_ip = get_client_ip(request)
    u.last_login_time = now_naive()
    await session.commit()

    token = create_access_token(subject=u.id, role=u.role)
    return TokenOut(access_token=token)


@router.get("/profile", response_model=UserOut)
async def profile(current_user: User = Depends(get_current_user)):
    return UserOut.model_validate(current_user)
