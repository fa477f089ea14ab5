# rapid_assessment/api/v1/auth.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from rapid_assessment.core.config import settings
from rapid_assessment.repositories import users as user_repo
from rapid_assessment.services.auth import (
    create_access_token,
    decode_access_token,
    hash_password,
    needs_rehash,
    verify_password,
)

router = APIRouter()

ANONYMOUS_USER = {"id": "anonymous", "email": None}

class SignupIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)

class LoginIn(BaseModel):
    email: EmailStr
    password: str

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserOut(BaseModel):
    id: str
    email: Optional[str] = None

@router.post("/auth/signup", status_code=201, response_model=TokenOut)
async def signup(payload: SignupIn):
    if await user_repo.get_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    try:
        uid = await user_repo.create_user(payload.email, hash_password(payload.password))
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    return {"access_token": create_access_token(uid), "token_type": "bearer"}

@router.post("/auth/login", response_model=TokenOut)
async def login(payload: LoginIn):
    user = await user_repo.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if needs_rehash(user["password_hash"]):
        await user_repo.set_password_hash(user["id"], hash_password(payload.password))
    return {"access_token": create_access_token(user["id"]), "token_type": "bearer"}

# Dependency to get current user
security = HTTPBearer(auto_error=False)

async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    if not settings.AUTH_ENABLED:
        return ANONYMOUS_USER
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        td = decode_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not td.sub:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await user_repo.get_user(td.sub)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return {"id": user["id"], "email": user["email"]}

@router.get("/auth/me", response_model=UserOut)
async def me(user=Depends(get_current_user)):
    return user
