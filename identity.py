import logging
import secrets
import uuid
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from errors import AccountExists, Unauthenticated
from models import AuthSession, UserAccount, UserProfile, utcnow
from schemas import SignInIn, SignUpIn

logger = logging.getLogger(__name__)


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="session-token")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class IdentityProvider:
    """Accounts and sessions stored next to the application data.

    Services only ever see the user id this class resolves; nothing else in
    the code base reads the account or session tables.
    """

    def __init__(self, session: Session, max_age_hours: Optional[int] = None) -> None:
        self.session = session
        self.max_age_hours = max_age_hours or get_settings().session_max_age_hours

    def sign_up(self, data: SignUpIn) -> UserAccount:
        existing = self.session.scalar(
            select(UserAccount).where(UserAccount.email == data.email)
        )
        if existing:
            raise AccountExists()

        account = UserAccount(
            id=str(uuid.uuid4()),
            email=data.email,
            password_hash=hash_password(data.password),
        )
        self.session.add(account)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise AccountExists() from exc
        self.session.refresh(account)

        profile = UserProfile(
            user_id=account.id, full_name=data.full_name.strip(), email=data.email
        )
        self.session.add(profile)
        try:
            self.session.commit()
        except SQLAlchemyError:
            # The account is usable without a profile row.
            self.session.rollback()
            logger.exception(f"profile_create_failed: user={account.id}")
        logger.info(f"account_created: user={account.id}")
        return account

    def sign_in(self, data: SignInIn) -> str:
        account = self.session.scalar(
            select(UserAccount).where(UserAccount.email == data.email.strip().lower())
        )
        if not account or not verify_password(data.password, account.password_hash):
            logger.info("sign_in_failed: reason=bad_credentials")
            raise Unauthenticated("Invalid email or password")

        auth_session = AuthSession(id=secrets.token_hex(16), user_id=account.id)
        self.session.add(auth_session)
        self.session.commit()
        logger.info(f"sign_in: user={account.id} session={auth_session.id[:8]}")
        return self._issue(auth_session)

    def get_current_user(self, token: Optional[str]) -> str:
        return self._resolve(token).user_id

    def get_account(self, user_id: str) -> UserAccount:
        account = self.session.get(UserAccount, user_id)
        if not account:
            raise Unauthenticated()
        return account

    def refresh(self, token: Optional[str]) -> str:
        return self._issue(self._resolve(token))

    def sign_out(self, token: Optional[str]) -> None:
        try:
            auth_session = self._resolve(token)
        except Unauthenticated:
            return
        auth_session.revoked_at = utcnow()
        self.session.commit()
        logger.info(f"sign_out: user={auth_session.user_id}")

    def _issue(self, auth_session: AuthSession) -> str:
        return _serializer().dumps({"sid": auth_session.id, "u": auth_session.user_id})

    def _resolve(self, token: Optional[str]) -> AuthSession:
        if not token:
            raise Unauthenticated()
        try:
            data = _serializer().loads(token, max_age=self.max_age_hours * 3600)
        except BadSignature as exc:
            raise Unauthenticated() from exc
        if not isinstance(data, dict) or not isinstance(data.get("sid"), str):
            raise Unauthenticated()

        auth_session = self.session.get(AuthSession, data["sid"])
        if (
            not auth_session
            or auth_session.revoked_at is not None
            or auth_session.user_id != data.get("u")
        ):
            raise Unauthenticated()
        auth_session.last_seen_at = utcnow()
        self.session.commit()
        return auth_session
