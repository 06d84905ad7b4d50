import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from runner_checkin import models, schemas, auth_utils
from runner_checkin.auth_utils import create_access_token, get_current_user, get_db

logger = logging.getLogger("runner_checkin.auth")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# Endpoint: POST /api/auth/login
# Description: Authenticates a desk user by user name and password and returns a signed bearer token
# together with the user's public details.
@router.post("/login", response_model=schemas.LoginResponse)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    logger.debug(f"Login attempt for user: {credentials.username}")
    if not credentials.username or not credentials.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    db_user = auth_utils.get_user_by_username(db, credentials.username)
    if not db_user or not auth_utils.verify_password(credentials.password, db_user.password_hash):
        logger.error(f"Invalid credentials for user: {credentials.username}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    access_token = create_access_token(
        data={"sub": str(db_user.id)},
        token_type="staff",
        expires_delta=timedelta(minutes=auth_utils.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info(f"User {db_user.id} ({db_user.user_name}) logged in")
    return {
        "success": True,
        "token": access_token,
        "access_token": access_token,
        "token_type": "bearer",
        "user": db_user,
    }

# Endpoint: GET /api/auth/me
# Description: Returns the currently authenticated user.
@router.get("/me", response_model=schemas.UserSchema)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    logger.debug(f"Fetching profile for user {current_user.id} ({current_user.user_name})")
    return current_user
