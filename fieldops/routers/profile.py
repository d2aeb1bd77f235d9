from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from fieldops.deps import get_company_context, get_scoped_db
from fieldops.services.avatars import (
    AVATAR_PREFIX,
    avatar_url,
    discard_file,
    read_avatar_upload,
    remove_local_avatar,
    write_avatar,
)
from fieldops.services.company_context import CompanyContext, resolve_target_user
from fieldops.services.passwords import hash_password, validate_new_password, verify_password
from fieldops.services.users import email_taken, normalize_email, serialize_user

router = APIRouter(prefix="/api/profile", tags=["profile"])

logger = logging.getLogger(__name__)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    address: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


@router.get("")
def get_profile(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    return serialize_user(resolve_target_user(db, context))


@router.put("")
def update_profile(
    payload: ProfileUpdate,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    target = resolve_target_user(db, context)

    if "email" in changes:
        email = normalize_email(changes["email"] or "")
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")
        if email_taken(db, email, exclude_user_id=target.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
        changes["email"] = email

    for field, value in changes.items():
        if isinstance(value, str):
            value = value.strip() or None
        if field == "email" and value is None:
            continue
        setattr(target, field, value)
    target.profile_updated_at = datetime.utcnow()

    db.commit()
    db.refresh(target)
    return serialize_user(target)


@router.post("/avatar")
def upload_avatar(
    file: UploadFile = File(...),
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    data, ext = read_avatar_upload(file)
    target = resolve_target_user(db, context)

    path = write_avatar(data, target.id, ext)
    old_avatar = target.avatar
    try:
        target.avatar = avatar_url(path)
        target.profile_updated_at = datetime.utcnow()
        db.commit()
        db.refresh(target)
    except Exception:
        db.rollback()
        discard_file(path)
        logger.exception("%s upload failed target_user_id=%s", AVATAR_PREFIX, target.id)
        raise

    if old_avatar and old_avatar != target.avatar:
        remove_local_avatar(old_avatar)

    logger.info(
        "%s updated user_id=%s target_user_id=%s file=%s",
        AVATAR_PREFIX,
        context.user_id,
        target.id,
        path.name,
    )
    return {"avatar": target.avatar, "user": serialize_user(target)}


@router.delete("/avatar")
def delete_avatar(
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    target = resolve_target_user(db, context)
    old_avatar = target.avatar

    target.avatar = None
    target.profile_updated_at = datetime.utcnow()
    db.commit()

    remove_local_avatar(old_avatar)
    return {"ok": True}


@router.put("/password")
def change_password(
    payload: PasswordChange,
    context: CompanyContext = Depends(get_company_context),
    db: Session = Depends(get_scoped_db),
):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current and new password are required",
        )
    validate_new_password(payload.new_password)

    target = resolve_target_user(db, context)
    if not verify_password(payload.current_password, target.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")

    target.password_hash = hash_password(payload.new_password)
    db.commit()
    return {"ok": True}
