import logging

from models import Citizen, Operator, Role, User, UserRole
from schemas import LoginResult
from security import hash_password, verify_password
from services.base import AuthenticationService
from validation import validate_cnic

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid CNIC or password"


class OrmAuthenticationService(AuthenticationService):
    backend = "orm"

    def login(self, cnic: str, password: str) -> LoginResult:
        user = self.session.get(User, cnic)
        if user is None:
            logger.info("Login failed for %s: unknown user", cnic)
            return LoginResult(success=False, message=INVALID_CREDENTIALS)

        valid, new_hash = verify_password(password, user.password_hash)
        if not valid:
            logger.info("Login failed for %s: bad password", cnic)
            return LoginResult(success=False, message=INVALID_CREDENTIALS)

        if new_hash:
            user.password_hash = new_hash
            self.session.add(user)
            self.session.commit()
            logger.info("Upgraded password hash for %s", cnic)

        role = self.session.get(UserRole, user.role_id)

        citizen_id = None
        operator_id = None
        if user.role_id == Role.CITIZEN:
            citizen = self.session.get(Citizen, cnic)
            citizen_id = citizen.citizen_id if citizen else None
        elif user.role_id == Role.OPERATOR:
            op = self.session.get(Operator, cnic)
            operator_id = op.operator_id if op else None

        return LoginResult(
            success=True,
            message="Login successful",
            user_id=user.user_id,
            role_id=user.role_id,
            role_name=role.role_name if role else None,
            citizen_id=citizen_id,
            operator_id=operator_id,
        )

    def validate_cnic_format(self, cnic: str) -> bool:
        return validate_cnic(cnic)

    def generate_password_hash(self, password: str) -> str:
        return hash_password(password)
