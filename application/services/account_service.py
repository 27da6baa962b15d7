"""
账户应用服务（application/services）- 注册、登录、会话校验与注销
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from application.dto import SessionDTO, UserResponseDTO
from application.ports.key_value_store import KeyValueStore
from core.exceptions import TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger
from domain.common.exceptions import (
    PasswordErrorException,
    UserAlreadyExistsException,
    UserNotFoundException,
    UsernameAlreadyExistsException,
)
from domain.user.entity import Session, User
from domain.user.service import PasswordService, generate_id

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """用户与会话管理。会话 token 为随机十六进制串，有效期固定。"""

    def __init__(
        self,
        users: KeyValueStore,
        sessions: KeyValueStore,
        session_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._session_ttl = session_ttl

    async def register(self, username: str, email: str, password: str) -> SessionDTO:
        """注册新用户并直接登录"""
        for _, record in await self._users.items():
            if record.get("username") == username:
                raise UsernameAlreadyExistsException(username)
            if record.get("email") == email:
                raise UserAlreadyExistsException(email)

        now = _utcnow()
        user = User(
            id=generate_id(),
            username=username,
            email=email,
            hashed_password=PasswordService.hash_password(password),
            created_at=now,
            updated_at=now,
        )
        await self._users.put(user.id, user.to_record())
        logger.info("user_registered", user_id=user.id, username=username)
        return await self._open_session(user)

    async def login(self, username: str, password: str) -> SessionDTO:
        user = await self._find_by_username(username)
        if user is None or not PasswordService.verify_password(password, user.hashed_password):
            logger.info("login_failed", username=username)
            raise PasswordErrorException()
        return await self._open_session(user)

    async def current_user(self, token: str) -> UserResponseDTO:
        """Resolve a session token. An expired session is removed on access."""
        record = await self._sessions.get(token)
        if record is None:
            raise UnauthorizedException()

        session = Session.from_record(record)
        if session.is_expired(_utcnow()):
            await self._sessions.delete(token)
            logger.info("session_expired", user_id=session.user_id)
            raise TokenExpiredException()

        user_record = await self._users.get(session.user_id)
        if user_record is None:
            raise UserNotFoundException(session.user_id)
        return self._to_response_dto(User.from_record(user_record))

    async def logout(self, token: str) -> None:
        """注销；未知 token 同样视为成功"""
        removed = await self._sessions.delete(token)
        logger.info("user_logged_out", removed=removed)

    async def _open_session(self, user: User) -> SessionDTO:
        session = Session(
            user_id=user.id,
            token=generate_id(),
            expires_at=_utcnow() + self._session_ttl,
        )
        await self._sessions.put(session.token, session.to_record())
        return SessionDTO(
            token=session.token,
            expires_at=session.expires_at,
            user=self._to_response_dto(user),
        )

    async def _find_by_username(self, username: str) -> Optional[User]:
        for _, record in await self._users.items():
            if record.get("username") == username:
                return User.from_record(record)
        return None

    @staticmethod
    def _to_response_dto(user: User) -> UserResponseDTO:
        return UserResponseDTO(id=user.id, username=user.username, email=user.email)
