from typing import Optional
from fastapi import Header, Request
from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.settings import settings
from app.exceptions import UnauthorizedException

BEARER_PREFIX = "Bearer "

def get_s3_service(request: Request) -> S3Service:
    """Dependency provider for S3Service"""
    return request.app.state.s3

def get_dynamodb_service(request: Request) -> DynamoDBService:
    """Dependency provider for DynamoDBService"""
    return request.app.state.db

def require_auth(
    authorization: Optional[str] = Header(None),
    x_auth_key: Optional[str] = Header(None),
    x_auth_email: Optional[str] = Header(None),
):
    """
        Accepts a Bearer token, or an X-Auth-Key/X-Auth-Email pair. With no
        configured token any credential of either shape is accepted.
    """
    token = settings.auth_token
    if authorization and authorization.startswith(BEARER_PREFIX):
        if not token or authorization[len(BEARER_PREFIX):] == token:
            return
        raise UnauthorizedException()

    if x_auth_key and x_auth_email:
        if not token or x_auth_key == token:
            return
        raise UnauthorizedException()

    raise UnauthorizedException()
