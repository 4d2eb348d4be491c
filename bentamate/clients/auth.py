# bentamate/clients/auth.py
import logging
from typing import Optional

from bentamate.clients.backend import RemoteBackend
from bentamate.core.errors import AuthError, NetworkError

logger = logging.getLogger(__name__)


class AuthContext:
    """Who is writing. Sign-in itself belongs to the auth provider.

    The user id is resolved once through the backend and remembered, so that
    sales rung up after the network drops are still attributed.
    """

    def __init__(self, backend: RemoteBackend, user_id: Optional[str] = None):
        self.backend = backend
        self._user_id = user_id

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None

    async def get_current_user(self) -> str:
        if self._user_id:
            return self._user_id

        try:
            user = await self.backend.get_user()
        except NetworkError as exc:
            raise AuthError("Cannot verify the signed-in user while offline") from exc

        user_id = (user or {}).get("id")
        if not user_id:
            raise AuthError()
        self._user_id = str(user_id)
        logger.info("Authenticated as %s", self._user_id)
        return self._user_id
