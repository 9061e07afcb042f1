"""API v1 routes."""

from fastapi import APIRouter

from storefront.api.v1.endpoints import access_tokens, public

api_router = APIRouter()

api_router.include_router(public.router, prefix="/public", tags=["Public Access"])
api_router.include_router(access_tokens.router, prefix="/access-tokens", tags=["Access Tokens"])
