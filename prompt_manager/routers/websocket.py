from typing import Optional

from fastapi import WebSocket, status

from prompt_manager.database import sessionlocal
from prompt_manager.exceptions import StoreUnavailable
from prompt_manager.routers.auth import AUTH_COOKIE, decode_user_id
from prompt_manager.services.identity_service import CurrentUser, IdentityProvider


async def authenticate_websocket(websocket: WebSocket) -> Optional[CurrentUser]:
    """
    Accept the socket for an authenticated user, or close it with a policy
    violation. The token comes from the ``token`` query parameter or the
    auth cookie.
    """
    token = websocket.query_params.get("token") or websocket.cookies.get(AUTH_COOKIE)
    user_id = decode_user_id(token)

    user = None
    if user_id:
        db = sessionlocal()
        try:
            user = await IdentityProvider(db).get_user(user_id)
        except StoreUnavailable:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return None
        finally:
            db.close()

    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    await websocket.accept()
    return user
