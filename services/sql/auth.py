import logging

from models import Role
from schemas import LoginResult
from security import hash_password, verify_password
from services.base import AuthenticationService
from services.sql.statements import sql
from validation import validate_cnic

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid CNIC or password"

FIND_USER = sql(
    """
    SELECT u.user_id, u.password_hash, u.role_id, r.role_name,
           c.citizen_id, o.operator_id
      FROM users u
      JOIN user_role r ON r.role_id = u.role_id
      LEFT JOIN citizen c ON c.citizen_id = u.user_id
      LEFT JOIN operator o ON o.operator_id = u.user_id
     WHERE u.user_id = :cnic
    """
)

UPDATE_HASH = sql("UPDATE users SET password_hash = :password_hash WHERE user_id = :cnic")


class SqlAuthenticationService(AuthenticationService):
    backend = "sql"

    def login(self, cnic: str, password: str) -> LoginResult:
        user = self.session.exec(FIND_USER, params={"cnic": cnic}).mappings().first()
        if user is None:
            logger.info("Login failed for %s: unknown user", cnic)
            return LoginResult(success=False, message=INVALID_CREDENTIALS)

        valid, new_hash = verify_password(password, user["password_hash"])
        if not valid:
            logger.info("Login failed for %s: bad password", cnic)
            return LoginResult(success=False, message=INVALID_CREDENTIALS)

        if new_hash:
            self.session.exec(UPDATE_HASH, params={"password_hash": new_hash, "cnic": cnic})
            self.session.commit()
            logger.info("Upgraded password hash for %s", cnic)

        return LoginResult(
            success=True,
            message="Login successful",
            user_id=user["user_id"],
            role_id=user["role_id"],
            role_name=user["role_name"],
            citizen_id=user["citizen_id"] if user["role_id"] == Role.CITIZEN else None,
            operator_id=user["operator_id"] if user["role_id"] == Role.OPERATOR else None,
        )

    def validate_cnic_format(self, cnic: str) -> bool:
        return validate_cnic(cnic)

    def generate_password_hash(self, password: str) -> str:
        return hash_password(password)
