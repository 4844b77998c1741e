"""User registration and login"""

import logging

from sqlalchemy.orm import Session

from loyalty_gateway.domain.exceptions import InvalidCredentialsError, UserAlreadyExistsError
from loyalty_gateway.infrastructure.database.repositories import BalanceRepository, UserRepository
from loyalty_gateway.infrastructure.database.session import ConflictingWriteError, transaction
from loyalty_gateway.infrastructure.security.passwords import check_password, hash_password
from loyalty_gateway.infrastructure.security.tokens import TokenService

logger = logging.getLogger(__name__)


class UserAuth:
    """Account creation and credential checks; both return an access token"""

    def __init__(self, db: Session, tokens: TokenService, bcrypt_rounds: int = 12):
        self.db = db
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        self.users = UserRepository(db)
        self.balances = BalanceRepository(db)

    def register(self, login: str, password: str) -> str:
        """
        Create the user together with an empty balance.

        Raises:
            UserAlreadyExistsError: Login is taken
            StorageError: Database failure
        """
        password_hash = hash_password(password, rounds=self.bcrypt_rounds)
        try:
            with transaction(self.db):
                if self.users.get_user_by_login(login) is not None:
                    raise UserAlreadyExistsError(f"User {login!r} already exists")
                user = self.users.create_user(login, password_hash)
                self.balances.create_balance(user.id)
        except ConflictingWriteError as e:
            raise UserAlreadyExistsError(f"User {login!r} already exists") from e

        logger.info("User registered", extra={"step": "user_registered", "owner_id": str(user.id)})
        return self.tokens.issue(user.id)

    def login(self, login: str, password: str) -> str:
        """
        Raises:
            InvalidCredentialsError: Unknown login or wrong password
        """
        with transaction(self.db):
            user = self.users.get_user_by_login(login)
        if user is None or not check_password(password, user.password_hash):
            raise InvalidCredentialsError("Login or password is wrong")
        return self.tokens.issue(user.id)
