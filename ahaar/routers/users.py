import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ahaar.core.config import API_PREFIX, FRONTEND_URL, REFRESH_COOKIE_NAME
from ahaar.core.database import get_db
from ahaar.core.errors import Forbidden, Internal, NotFound, PaymentRequired, Unauthenticated, ValidationError
from ahaar.deps import (
    asset_store,
    get_active_principal,
    list_params,
    mail_sender,
    require_active_subscription,
    require_operation,
)
from ahaar.models.brand import Brand
from ahaar.models.plan import Plan
from ahaar.models.user import PasswordHistory, RemovedUser, User
from ahaar.services.access_control import (
    ASSIGNABLE_ROLES,
    Principal,
    Role,
    ensure_can_manage,
    ensure_not_revoked,
    owned_by,
    require_brand,
)
from ahaar.services.accounts import (
    ensure_contact_available,
    ensure_username_available,
    find_by_identifier,
    principal_for,
    register_account,
    remember_password,
    set_password,
)
from ahaar.services.assets import AssetStore, read_image_upload, replace_asset
from ahaar.services.auth import (
    EmailTokenExpired,
    EmailTokenInvalid,
    create_access_token,
    create_email_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    read_email_token,
    refresh_cookie_options,
    verification_link,
    verify_password,
)
from ahaar.services.mail import MailSender, build_verification_email, deliver
from ahaar.services.resources import (
    ACCOUNT_ID_BYTES,
    ListParams,
    apply_changes,
    brand_info_map,
    changed_fields,
    generate_external_id,
    iso,
    list_scoped,
)
from ahaar.services.validation import (
    normalize_identifier,
    normalize_password,
    require_field,
    validate_email,
    validate_mobile,
    validate_password,
    validate_string,
)
from ahaar.utils.clock import utcnow

logger = logging.getLogger(__name__)

# Identity routes stay reachable without a plan; staff creation is gated per route.
router = APIRouter(prefix=f"{API_PREFIX}/users", tags=["users"])


class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    brand_name: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = None


class LoginIn(BaseModel):
    username_email_mobile: Optional[str] = None
    password: Optional[str] = None


class StaffAccountIn(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserInfoUpdate(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    mobile: Optional[str] = None


class OwnPasswordChange(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class CredentialsChange(BaseModel):
    role: Optional[str] = None
    password: Optional[str] = None


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "user_id": user.user_id,
        "brand_id": user.brand_id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "mobile": user.mobile,
        "role": user.role,
        "avatar": {"id": user.avatar_id, "url": user.avatar_url},
        "banned_user": user.banned_user,
        "deleted_user": user.deleted_user,
        "email_verified": user.email_verified,
        "mobile_verified": user.mobile_verified,
        "createdBy": user.created_by,
        "createdAt": iso(user.created_at),
        "updatedBy": user.updated_by,
        "updatedAt": iso(user.updated_at),
    }


def _assignable_role(value: Optional[str]) -> Role:
    normalized = (value or "").strip().lower()
    try:
        role = Role(normalized)
    except ValueError:
        role = None
    if role not in ASSIGNABLE_ROLES:
        raise ValidationError("Role must be admin or regular")
    return role


def _username(value: Optional[str]) -> str:
    username = normalize_identifier(validate_string(value, "Username", 3, 30))
    if "@" in username:
        raise ValidationError("Username can't contain @")
    if username.isdigit():
        raise ValidationError("Username can't contain only digits")
    return username


def _load_target(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def _send_verification(sender: MailSender, user: User) -> bool:
    link = verification_link(create_email_token(user.user_id))
    return deliver(sender, build_verification_email(name=user.name, email=user.email, link=link))


@router.post("/create-user")
def register(
    payload: RegisterIn,
    db: Session = Depends(get_db),
    sender: MailSender = Depends(mail_sender),
):
    for value, message in (
        (payload.name, "Name is required"),
        (payload.email, "Email is required"),
        (payload.brand_name, "Brand name is required"),
        (payload.mobile, "Mobile is required"),
        (payload.password, "Password is required"),
    ):
        require_field(value, message)

    brand, user = register_account(
        db,
        name=validate_string(payload.name, "Name", 3, 30),
        email=validate_email(payload.email),
        mobile=validate_mobile(payload.mobile),
        brand_name=validate_string(payload.brand_name, "Brand name", 3, 30),
        password=validate_password(payload.password),
    )
    email_sent = _send_verification(sender, user)

    message = "Account created. Please check your email to verify your account"
    if not email_sent:
        message = "Account created, but the verification email could not be sent. Try logging in to resend it"
    return {
        "success": True,
        "message": message,
        "email_sent": email_sent,
        "data": {"user_id": user.user_id, "brand_id": brand.brand_id},
    }


@router.get("/verify/{token}")
def verify_email(token: str, db: Session = Depends(get_db)):
    try:
        user_id = read_email_token(token)
    except EmailTokenExpired:
        return RedirectResponse(f"{FRONTEND_URL}/expired-credentials", status_code=302)
    except EmailTokenInvalid:
        raise ValidationError("Invalid verification link")

    user = _load_target(db, user_id)
    if not user.email_verified:
        user.email_verified = True
        user.updated_at = utcnow()
        db.commit()
        logger.info("email verified user_id=%s", user.user_id)
    return RedirectResponse(f"{FRONTEND_URL}/login", status_code=302)


@router.post("/auth-user-login")
def login(
    payload: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    sender: MailSender = Depends(mail_sender),
):
    require_field(payload.username_email_mobile, "Username, email or mobile is required")
    require_field(payload.password, "Password is required")

    user = find_by_identifier(db, normalize_identifier(payload.username_email_mobile))
    if user is None or not verify_password(normalize_password(payload.password), user.password_hash):
        raise Unauthenticated("Invalid credentials")
    if user.deleted_user:
        raise Unauthenticated("Your account has been deleted")
    if user.banned_user:
        raise Unauthenticated("Your account has been banned")
    if user.email and not user.email_verified:
        _send_verification(sender, user)
        raise Unauthenticated("Please verify your email. A new verification link has been sent")

    principal = principal_for(user)
    options = refresh_cookie_options()
    response.set_cookie(value=create_refresh_token(principal), **options)
    logger.info("login user_id=%s role=%s", user.user_id, user.role)
    return {
        "success": True,
        "message": "Login successful",
        "accessToken": create_access_token(principal),
        "data": principal.claims(),
    }


@router.post("/auth-user-logout")
def logout(response: Response):
    options = refresh_cookie_options()
    response.delete_cookie(
        key=options["key"],
        path=options["path"],
        domain=options["domain"],
        secure=options["secure"],
        httponly=options["httponly"],
        samesite=options["samesite"],
    )
    return {"success": True, "message": "Logout successful"}


@router.get("/auth-manage-token")
def refresh_access_token(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE_NAME)
    if not token:
        raise Unauthenticated("Refresh token not found. Please login")
    try:
        claims = decode_refresh_token(token)
    except ValueError:
        raise Unauthenticated("Invalid or expired refresh token. Please login")

    principal = Principal.from_claims(claims)
    ensure_not_revoked(db, principal)
    return {
        "success": True,
        "message": "Access token refreshed",
        "accessToken": create_access_token(principal),
        "data": principal.claims(),
    }


def _current_user_response(db: Session, principal: Principal) -> dict:
    user = _load_target(db, principal.user_id)
    data = _user_to_dict(user)
    data["brand_info"] = brand_info_map(db, [user.brand_id]).get(user.brand_id)
    return {"success": True, "message": "User retrieved successfully", "data": data}


@router.post("/find-current-user")
def find_current_user(
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return _current_user_response(db, principal)


@router.get("/find-current-user")
def get_current_user(
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    return _current_user_response(db, principal)


@router.get("/find-user/{user_id}")
def find_user(
    user_id: str,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.user_id == user_id, *owned_by(principal, User.brand_id)).first()
    if user is None:
        raise NotFound("User not found")
    return {"success": True, "message": "User retrieved successfully", "data": _user_to_dict(user)}


@router.get("/find-users")
def find_users(
    params: ListParams = Depends(list_params),
    principal: Principal = Depends(require_operation("user.list")),
    db: Session = Depends(get_db),
):
    return list_scoped(
        db,
        principal,
        User,
        params=params,
        search_columns=(User.name, User.mobile, User.email, User.username, User.role),
        serializer=_user_to_dict,
        message="Users retrieved successfully",
        order_by=(User.created_at.desc(), User.id.desc()),
    )


@router.post("/auth-create-user", dependencies=[Depends(require_active_subscription)])
def create_staff_account(
    payload: StaffAccountIn,
    principal: Principal = Depends(require_operation("user.create_account")),
    db: Session = Depends(get_db),
):
    brand_id = require_brand(principal)
    for value, message in (
        (payload.name, "Name is required"),
        (payload.username, "Username is required"),
        (payload.mobile, "Mobile is required"),
        (payload.password, "Password is required"),
        (payload.role, "Role is required"),
    ):
        require_field(value, message)

    name = validate_string(payload.name, "Name", 3, 30)
    username = _username(payload.username)
    mobile = validate_mobile(payload.mobile)
    email = validate_email(payload.email) if payload.email else None
    password = validate_password(payload.password)
    role = _assignable_role(payload.role)

    brand = db.query(Brand).filter(Brand.brand_id == brand_id).first()
    if brand is None or not brand.selected_plan_id:
        raise PaymentRequired("No plan selected. Please purchase a plan to continue.")
    plan = db.query(Plan).filter(Plan.plan_id == brand.selected_plan_id).first()
    if plan is None:
        raise NotFound("Selected plan not found")
    if db.query(User).filter(User.brand_id == brand_id).count() >= plan.user_limit:
        raise ValidationError(f"User limit reached. Your plan allows {plan.user_limit} users")

    ensure_username_available(db, username)
    ensure_contact_available(db, email=email, mobile=mobile)

    user = User(
        user_id=generate_external_id(db, User, nbytes=ACCOUNT_ID_BYTES),
        brand_id=brand_id,
        name=name,
        username=username,
        email=email,
        mobile=mobile,
        password_hash=hash_password(password),
        role=role.value,
        # accounts created by an authority are trusted without a mail round trip
        email_verified=True,
        created_by=principal.user_id,
        created_at=utcnow(),
    )
    db.add(user)
    db.flush()
    remember_password(db, user.user_id, user.password_hash)
    db.commit()
    db.refresh(user)
    logger.info("staff account created user_id=%s brand_id=%s role=%s", user.user_id, brand_id, user.role)
    return {"success": True, "message": "User created successfully", "data": _user_to_dict(user)}


@router.patch("/update-user-info")
def update_user_info(
    payload: UserInfoUpdate,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    user = _load_target(db, principal.user_id)
    candidate = {}
    if payload.name is not None:
        candidate["name"] = validate_string(payload.name, "Name", 3, 30)
    if payload.username is not None:
        candidate["username"] = _username(payload.username)
    if payload.mobile is not None:
        candidate["mobile"] = validate_mobile(payload.mobile)

    changes = changed_fields(user, candidate)
    if "username" in changes:
        ensure_username_available(db, changes["username"], exclude_id=user.id)
    ensure_contact_available(db, email=None, mobile=changes.get("mobile"), exclude_id=user.id)
    apply_changes(user, changes, principal)
    db.commit()
    db.refresh(user)
    return {"success": True, "message": "User info updated", "data": _user_to_dict(user)}


@router.patch("/update-avatar/{user_id}")
def update_avatar(
    user_id: str,
    avatar: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(asset_store),
):
    user = _load_target(db, user_id)
    if user.user_id != principal.user_id:
        ensure_can_manage(principal, Role.parse(user.role), user.brand_id)
    data = read_image_upload(avatar, "Avatar")

    try:
        uploaded = replace_asset(
            store,
            old_public_id=user.avatar_id,
            data=data,
            folder=f"users/{user.user_id}/avatar",
            filename=avatar.filename,
        )
    except Exception as exc:
        logger.exception("avatar upload failed user_id=%s", user.user_id)
        raise Internal("Failed to upload avatar") from exc

    apply_changes(user, {"avatar_id": uploaded["public_id"], "avatar_url": uploaded["url"]}, principal)
    db.commit()
    db.refresh(user)
    return {"success": True, "message": "Avatar updated", "data": _user_to_dict(user)}


@router.delete("/delete-user/{user_id}")
def delete_user(
    user_id: str,
    principal: Principal = Depends(require_operation("user.delete")),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(asset_store),
):
    user = _load_target(db, user_id)
    if user.user_id == principal.user_id:
        raise Forbidden("You can't delete your own account")
    ensure_can_manage(principal, Role.parse(user.role), user.brand_id)

    if user.avatar_id:
        try:
            result = store.delete(user.avatar_id)
        except Exception as exc:
            logger.exception("avatar delete failed user_id=%s", user.user_id)
            raise Internal("Failed to delete user avatar") from exc
        logger.info("avatar deleted user_id=%s result=%s", user.user_id, result.get("result"))

    if db.query(RemovedUser.id).filter(RemovedUser.user_id == user.user_id).first() is None:
        db.add(
            RemovedUser(
                user_id=user.user_id,
                brand_id=user.brand_id,
                created_by=principal.user_id,
                created_at=utcnow(),
            )
        )
    db.query(PasswordHistory).filter(PasswordHistory.user_id == user.user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    logger.info("user removed user_id=%s by=%s", user_id, principal.user_id)
    return {"success": True, "message": "User deleted successfully"}


@router.patch("/change-own-password")
def change_own_password(
    payload: OwnPasswordChange,
    principal: Principal = Depends(get_active_principal),
    db: Session = Depends(get_db),
):
    require_field(payload.old_password, "Old password is required")
    require_field(payload.new_password, "New password is required")
    require_field(payload.confirm_password, "Confirm password is required")

    user = _load_target(db, principal.user_id)
    if not verify_password(normalize_password(payload.old_password), user.password_hash):
        raise ValidationError("Old password is incorrect")
    new_password = validate_password(payload.new_password, "New password")
    if new_password != validate_password(payload.confirm_password, "Confirm password"):
        raise ValidationError("New password and confirm password do not match")
    if verify_password(new_password, user.password_hash):
        raise ValidationError("New password must be different from old password")

    set_password(db, user, new_password, updated_by=principal.user_id)
    db.commit()
    return {"success": True, "message": "Password changed successfully"}


@router.patch("/change-user-credentials-by-authority/{user_id}")
def change_user_credentials(
    user_id: str,
    payload: CredentialsChange,
    principal: Principal = Depends(require_operation("user.change_credentials")),
    db: Session = Depends(get_db),
):
    if payload.role is None and payload.password is None:
        raise ValidationError("Role or password is required")

    user = _load_target(db, user_id)
    if user.user_id == principal.user_id:
        raise Forbidden("Use your own profile settings to change your credentials")
    ensure_can_manage(principal, Role.parse(user.role), user.brand_id)

    if payload.role is not None:
        role = _assignable_role(payload.role)
        if role.value == user.role:
            raise ValidationError(f"User is already {role.value}")
        apply_changes(user, {"role": role.value}, principal)
    if payload.password is not None:
        set_password(db, user, validate_password(payload.password), updated_by=principal.user_id)

    db.commit()
    db.refresh(user)
    logger.info("credentials changed user_id=%s by=%s", user.user_id, principal.user_id)
    return {"success": True, "message": "User credentials updated", "data": _user_to_dict(user)}
