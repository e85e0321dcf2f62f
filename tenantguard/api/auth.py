"""Pre-signup helpers for the sign-in form."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenantguard.api.dependencies import procedure
from tenantguard.core.errors import BadRequestError
from tenantguard.core.guards import AccessLevel
from tenantguard.models.context import AuthorizationContext
from tenantguard.services.disposable_email import (
    email_domain,
    is_disposable_email,
    is_valid_email,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])

DISPOSABLE_MESSAGE = (
    "Please use a permanent email address (e.g., Gmail, Outlook, or work email)."
)


class ValidateEmailIn(BaseModel):
    email: str


class ValidateEmailOut(BaseModel):
    valid: bool = True


@router.post("/validate-email", response_model=ValidateEmailOut)
async def validate_email(
    body: ValidateEmailIn,
    _ctx: Annotated[
        AuthorizationContext, Depends(procedure("auth.validateEmail", AccessLevel.PUBLIC))
    ],
) -> ValidateEmailOut:
    if not is_valid_email(body.email):
        raise BadRequestError("A valid email address is required.")
    if is_disposable_email(body.email):
        logger.info("Rejected disposable signup domain %s", email_domain(body.email))
        raise BadRequestError(DISPOSABLE_MESSAGE)
    return ValidateEmailOut()
