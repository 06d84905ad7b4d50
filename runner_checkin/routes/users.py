import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from runner_checkin import models, schemas
from runner_checkin.auth_utils import admin_required, get_db, hash_password

logger = logging.getLogger("runner_checkin.users")

router = APIRouter(prefix="/api/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id, models.User.is_active == True).first()
    if not user:
        logger.error(f"User {user_id} not found")
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _user_name_taken(db: Session, user_name: str, exclude_id: int = None) -> bool:
    query = db.query(models.User).filter(models.User.user_name == user_name)
    if exclude_id is not None:
        query = query.filter(models.User.id != exclude_id)
    return query.first() is not None


@router.get("", response_model=List[schemas.UserSchema])
def list_users(db: Session = Depends(get_db), admin: models.User = Depends(admin_required)):
    users = db.query(models.User).filter(models.User.is_active == True).order_by(models.User.user_name).all()
    logger.info(f"Admin {admin.id} fetched {len(users)} users")
    return users


@router.post("", response_model=schemas.UserSchema, status_code=201)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_required)
):
    logger.debug(f"Admin {admin.id} creating user {payload.user_name}")
    if _user_name_taken(db, payload.user_name):
        logger.error(f"User name {payload.user_name} already exists")
        raise HTTPException(status_code=409, detail="User name already exists")

    user = models.User(
        user_name=payload.user_name,
        password_hash=hash_password(payload.password),
        email=payload.email,
        role=payload.role or models.UserRole.staff,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Admin {admin.id} created user {user.id} ({user.user_name})")
    return user


@router.put("/{user_id}", response_model=schemas.UserSchema)
def update_user(
    user_id: int,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_required)
):
    user = _get_user_or_404(db, user_id)
    if payload.user_name is not None and payload.user_name != user.user_name:
        if _user_name_taken(db, payload.user_name, exclude_id=user.id):
            raise HTTPException(status_code=409, detail="User name already exists")
        user.user_name = payload.user_name
    if payload.email is not None:
        user.email = payload.email
    if payload.role is not None:
        user.role = payload.role
    if payload.password:
        user.password_hash = hash_password(payload.password)

    try:
        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.error(f"Failed to update user {user_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to update user")
    logger.info(f"Admin {admin.id} updated user {user.id}")
    return user


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(admin_required)
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user = _get_user_or_404(db, user_id)
    user.is_active = False
    db.commit()
    logger.info(f"Admin {admin.id} deactivated user {user_id}")
    return {"success": True, "message": "User deactivated successfully"}
