from datetime import datetime, timedelta, timezone
from typing import Annotated

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel
import logging

import secretmanager
from config import get_settings

logger = logging.getLogger('uvicorn.error')

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    username: str | None = None

class User(BaseModel):
    id: str
    username: str
    display_name: str | None = None
    disabled: bool | None = None

class UserInDB(User):
    hashed_password: str

def get_secret_key() -> str:
    settings = get_settings()
    if settings.jwt_secret:
        return settings.jwt_secret
    if settings.jwt_secret_name:
        return secretmanager.get_secret(settings.jwt_secret_name)
    raise RuntimeError("No JWT signing key configured (set MUSINGS_JWT_SECRET or MUSINGS_JWT_SECRET_NAME)")


def verify_password(plain_password, hashed_password):
    return bcrypt.checkpw(
        bytes(plain_password, encoding="utf-8"),
        bytes(hashed_password, encoding="utf-8"),
    )


def get_password_hash(password):
    return bcrypt.hashpw(
        bytes(password, encoding="utf-8"),
        bcrypt.gensalt(),
    ).decode("utf-8")

def get_user(username: str):
    settings = get_settings()
    db = firestore.Client(project=settings.gcp_project)
    try:
        users_ref = db.collection(settings.users_collection)
        queried_users = users_ref.where(filter=FieldFilter("username", "==", username)).get()
        if len(queried_users) > 0:
            user_dict = queried_users[0].to_dict()
            user_dict.setdefault("id", queried_users[0].id)
            return UserInDB(**user_dict)
    finally:
        db.close()


def authenticate_user(username: str, password: str):
    user = get_user(username)
    if not user:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, get_secret_key(), algorithm=get_settings().jwt_algorithm)


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, get_secret_key(), algorithms=[get_settings().jwt_algorithm])
        username: str = payload.get("sub")
        if username is None:
            raise credentials_exception
        token_data = TokenData(username=username)
    except InvalidTokenError:
        raise credentials_exception
    user = get_user(username=token_data.username)
    if user is None:
        raise credentials_exception
    return User(**user.model_dump(exclude={"hashed_password"}))


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
):
    if current_user.disabled:
        logger.warning(f"Disabled user '{current_user.username}' attempted an authenticated call")
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
