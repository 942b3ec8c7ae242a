from fastapi import Depends, HTTPException, Request, status

from . import config

_LOOPBACK = ("127.0.0.1", "::1", "localhost")


async def require_api_auth(request: Request) -> None:
    """Bearer token when SAVEQUEST_API_TOKEN is set, else loopback callers only.

    Routers opt in with ``dependencies=[RequireAPIAuth]``; the Plaid webhook
    does not, since Plaid cannot present the token.
    """
    if config.API_TOKEN:
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme != "Bearer" or token.strip() != config.API_TOKEN:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or missing API token.",
            )
        return

    if (request.client.host if request.client else "") not in _LOOPBACK:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Remote access requires SAVEQUEST_API_TOKEN.",
        )


RequireAPIAuth = Depends(require_api_auth)
