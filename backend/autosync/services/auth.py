import hmac
import logging
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from autosync.config import settings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
_SALT = "admin-session"


class AdminAuth:
    """Checks the single admin credential pair and issues signed session tokens."""

    def __init__(
        self,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
        secret_key: Optional[str] = None,
        max_age: Optional[int] = None,
    ):
        self.admin_email = admin_email or settings.ADMIN_EMAIL
        self.admin_password = admin_password or settings.ADMIN_PASSWORD
        self.max_age = max_age or settings.ADMIN_SESSION_MAX_AGE_S
        self.serializer = URLSafeTimedSerializer(secret_key or settings.SECRET_KEY, salt=_SALT)

    def verify_credentials(self, email: str, password: str) -> bool:
        email_ok = hmac.compare_digest(email.encode(), self.admin_email.encode())
        password_ok = hmac.compare_digest(password.encode(), self.admin_password.encode())
        return email_ok and password_ok

    def issue_token(self) -> str:
        return self.serializer.dumps({"role": "admin"})

    def verify_token(self, token: Optional[str]) -> bool:
        if not token:
            return False
        try:
            data = self.serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.info("[AUTH] Expired admin session token")
            return False
        except BadSignature:
            logger.warning("[AUTH] Invalid admin session token")
            return False
        return isinstance(data, dict) and data.get("role") == "admin"
