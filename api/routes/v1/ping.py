"""
api/routes/v1/ping.py -- Liveness ping for clients.

Public. When the caller sends a valid access token the response says so,
which lets a front end check "am I still logged in?" without a 401 in the
console. An invalid or missing token is not an error here.
"""

from fastapi import APIRouter, Request

from api.models import PingResponse
from auth.dependencies import try_get_current_user

# Auth policy:
# - GET /api/v1/ping: public -- optional auth only changes the "authenticated" flag
router = APIRouter()


@router.get("/ping", response_model=PingResponse)
def ping(request: Request) -> PingResponse:
    return PingResponse(message="pong", authenticated=try_get_current_user(request) is not None)
