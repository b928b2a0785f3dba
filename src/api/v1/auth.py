"""
Authentication and profile endpoints.
"""

from fastapi import APIRouter, status

from src.api.deps import CurrentContext, Engine, Identity, Origin
from src.kernel.errors import InvalidCredentialsError
from src.kernel.permissions.authorization import PrincipalContext
from src.schemas.auth import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    ProfileResponse,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
)
from src.schemas.common import MessageResponse

router = APIRouter()


def profile_response(context: PrincipalContext) -> ProfileResponse:
    return ProfileResponse.model_validate(context.principal).model_copy(
        update={
            "roles": sorted(context.roles),
            "permissions": sorted(context.permissions),
        }
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    identity: Identity,
    engine: Engine,
    origin: Origin,
):
    """
    Register a new account.

    The requested role is granted only if it is self-registrable; otherwise
    the default role is used. Returns a bearer token.
    """
    principal = await identity.register(
        email=data.email,
        password=data.password,
        username=data.username,
        role=data.role,
        date_of_birth=data.date_of_birth,
        parent_email=data.parent_email,
        origin=origin,
    )
    token = identity.issue_token(principal)
    context = await engine.load_context(principal.id)

    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=profile_response(context),
    )


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    identity: Identity,
    engine: Engine,
    origin: Origin,
):
    """Authenticate with email and password."""
    result = await identity.authenticate(
        email=data.email,
        password=data.password,
        origin=origin,
    )
    if not result:
        raise InvalidCredentialsError()

    principal, token = result
    context = await engine.load_context(principal.id)

    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=profile_response(context),
    )


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(context: CurrentContext):
    """Get the current principal's profile with effective roles and permissions."""
    return profile_response(context)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    context: CurrentContext,
    identity: Identity,
    origin: Origin,
):
    """Update the current principal's profile."""
    await identity.update_profile(
        context.principal_id,
        username=data.username,
        avatar_url=data.avatar_url,
        date_of_birth=data.date_of_birth,
        parent_email=data.parent_email,
        preferences=data.preferences,
        origin=origin,
    )
    return profile_response(context)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    context: CurrentContext,
    identity: Identity,
    origin: Origin,
):
    """Change the current principal's password."""
    changed = await identity.change_password(
        context.principal_id,
        data.current_password,
        data.new_password,
        origin=origin,
    )
    if not changed:
        raise InvalidCredentialsError("The current password you entered is incorrect")

    return MessageResponse(message="Password changed successfully")


@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    data: DeleteAccountRequest,
    context: CurrentContext,
    identity: Identity,
    origin: Origin,
):
    """Delete the current principal after password confirmation."""
    deleted = await identity.delete_account(context.principal_id, data.password, origin=origin)
    if not deleted:
        raise InvalidCredentialsError("Invalid password")

    return MessageResponse(message="Account deleted successfully")
