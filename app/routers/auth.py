from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.auth import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyOtpRequest,
)
from app.schemas.users import UserResponse
from app.routers.users import get_current_user
from app.services.auth import AuthResult, credential_workflow
from app.services.errors import WorkflowError
from app.services.rate_limit import limit_otp_requests
from app.services.users import user_store

router = APIRouter(prefix="/auth", tags=["auth"])


def _http_error(exc: WorkflowError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _auth_response(result: AuthResult, message: str | None = None) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=result.user,
        token=result.token,
        token_type="bearer",
        expires_in_seconds=result.expires_in_seconds,
    )


@router.post(
    "/register",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_otp_requests)],
)
def register(payload: RegisterRequest) -> MessageResponse:
    try:
        message = credential_workflow.request_registration(
            payload.name, payload.email, payload.password
        )
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(
        message=message, expires_in_seconds=credential_workflow.otp_ttl_seconds
    )


@router.post("/verify-email-otp", response_model=AuthResponse, response_model_exclude_none=True)
def verify_email_otp(payload: VerifyOtpRequest) -> AuthResponse:
    try:
        result = credential_workflow.confirm_registration(payload.email, payload.otp)
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return _auth_response(result)


@router.post(
    "/resend-register-otp",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_otp_requests)],
)
def resend_register_otp(payload: EmailRequest) -> MessageResponse:
    try:
        message = credential_workflow.resend_registration_otp(payload.email)
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(
        message=message, expires_in_seconds=credential_workflow.otp_ttl_seconds
    )


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
def login(payload: LoginRequest) -> AuthResponse:
    try:
        result = credential_workflow.login(payload.email, payload.password)
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return _auth_response(result)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_otp_requests)],
)
def forgot_password(payload: EmailRequest) -> MessageResponse:
    try:
        message = credential_workflow.request_password_reset(payload.email)
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return MessageResponse(message=message)


@router.post("/reset-password", response_model=AuthResponse, response_model_exclude_none=True)
def reset_password(payload: ResetPasswordRequest) -> AuthResponse:
    try:
        result = credential_workflow.confirm_password_reset(
            payload.email, payload.otp, payload.new_password
        )
    except WorkflowError as exc:
        raise _http_error(exc) from exc
    return _auth_response(result, message="Password reset successful")


@router.put("/profile")
def update_profile(
    payload: ProfileUpdateRequest, user: UserResponse = Depends(get_current_user)
) -> dict:
    name = payload.name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name is required",
        )
    try:
        updated = user_store.update_name(user.id, name)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    return {"message": "Profile updated", "user": updated.model_dump(mode="json")}
