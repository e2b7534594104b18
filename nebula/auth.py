import hashlib
import json
import logging

from .errors import ErrorKind, Result
from .kv import KVStore
from .models import AuthRecord, SessionCheck
from .session import constant_time_equal

logger = logging.getLogger(__name__)

AUTH_KEY = "nebula_auth_v1"

DEFAULT_USER = "admin"
DEFAULT_PASS = "admin123456"
MIN_PASSWORD_LENGTH = 8


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class AuthStore:
    """The single operator's credentials, kept under one key."""

    def __init__(self, kv: KVStore):
        self.kv = kv

    def load(self) -> AuthRecord:
        raw = self.kv.get(AUTH_KEY)
        if raw:
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, dict) and isinstance(parsed.get("user"), str):
                    pass_hash = parsed.get("passHash")
                    return AuthRecord(
                        user=parsed["user"],
                        pass_hash=pass_hash if isinstance(pass_hash, str) else "",
                        force_change=bool(parsed.get("forceChange", True)),
                    )
            except ValueError:
                logger.warning("Auth record is not valid JSON, resetting to factory defaults")

        seed = AuthRecord(user=DEFAULT_USER, pass_hash="", force_change=True)
        self.save(seed)
        logger.info("Seeded factory auth record for user %r", DEFAULT_USER)
        return seed

    def save(self, record: AuthRecord) -> None:
        self.kv.put(AUTH_KEY, json.dumps(record.model_dump(by_alias=True), indent=2))

    def check_password(self, record: AuthRecord, password: str) -> bool:
        if record.pass_hash:
            return constant_time_equal(
                sha256_hex(password).encode("ascii"), record.pass_hash.encode("utf-8")
            )
        return constant_time_equal(password.encode("utf-8"), DEFAULT_PASS.encode("utf-8"))

    def login(self, user: str, password: str) -> Result:
        record = self.load()
        # evaluate both checks so a wrong user costs the same as a wrong password
        user_ok = constant_time_equal(user.encode("utf-8"), record.user.encode("utf-8"))
        pass_ok = self.check_password(record, password)
        if not (user_ok and pass_ok):
            logger.info("Rejected login for user %r", user)
            return Result.failure(ErrorKind.UNAUTHORIZED, "invalid username or password")
        must_change = record.force_change or not record.pass_hash
        return Result.success(SessionCheck(valid=True, user=record.user, must_change=must_change))

    def change_password(self, old_password: str, new_password: str) -> Result:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            return Result.failure(
                ErrorKind.VALIDATION,
                f"new password must be at least {MIN_PASSWORD_LENGTH} characters",
            )
        record = self.load()
        if not self.check_password(record, old_password):
            return Result.failure(ErrorKind.UNAUTHORIZED, "old password is incorrect")

        record.pass_hash = sha256_hex(new_password)
        record.force_change = False
        self.save(record)
        logger.info("Password changed for user %r", record.user)
        return Result.success(record)
