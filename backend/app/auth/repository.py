"""Repository handling persistence for authentication models."""
from __future__ import annotations

from typing import Optional, Sequence

from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.auth.enums import AccountType
from backend.app.auth.models import (
    INITIAL_PROFILE_STATUS,
    Account,
    ActivityLog,
    Application,
    Organization,
)


class AuthRepository:
    """Provide database access helpers for authentication workflows."""

    def __init__(self, session: AsyncSession, pwd_context: Optional[CryptContext] = None) -> None:
        self._session = session
        self._pwd_context = pwd_context or CryptContext(schemes=["bcrypt"], deprecated="auto")

    @property
    def session(self) -> AsyncSession:
        """Return the underlying SQLAlchemy session."""

        return self._session

    def hash_password(self, password: str) -> str:
        """Hash the provided password using bcrypt."""

        return self._pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verify whether a plaintext password matches a stored hash."""

        if not hashed_password:
            return False
        return self._pwd_context.verify(plain_password, hashed_password)

    async def create_account(
        self,
        *,
        email: str,
        password: str,
        full_name: str,
        professional_title: Optional[str],
        account_type: AccountType,
    ) -> Account:
        """Persist a new, unverified account with a hashed password."""

        account = Account(
            email=email,
            hashed_password=self.hash_password(password),
            full_name=full_name,
            professional_title=professional_title,
            account_type=account_type,
            is_verified=False,
            profile_status=INITIAL_PROFILE_STATUS,
        )
        self._session.add(account)
        await self._session.flush()
        return account

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        """Retrieve an account by its exact email address."""

        result = await self._session.execute(select(Account).where(Account.email == email))
        return result.scalar_one_or_none()

    async def get_account_by_id(self, account_id: str) -> Optional[Account]:
        """Retrieve an account by identifier."""

        result = await self._session.execute(select(Account).where(Account.id == account_id))
        return result.scalar_one_or_none()

    async def get_organization_by_work_email(self, email: str) -> Optional[Organization]:
        """Retrieve an organization registered under the given work email."""

        result = await self._session.execute(
            select(Organization).where(Organization.work_email == email)
        )
        return result.scalar_one_or_none()

    async def list_accounts(self) -> Sequence[Account]:
        """Return every account ordered by creation time."""

        result = await self._session.execute(select(Account).order_by(Account.created_at))
        return result.scalars().all()

    async def set_password(self, account: Account, password: str) -> None:
        """Replace the account credential and discard any pending OTP."""

        account.hashed_password = self.hash_password(password)
        account.otp = None
        account.otp_created_at = None
        await self._session.flush()

    async def delete_account(self, account: Account) -> int:
        """Delete an account and the applications it owns.

        Both deletions are flushed in the current transaction; the caller
        commits or rolls back the unit as a whole.

        Returns:
            int: Number of application rows removed.
        """

        result = await self._session.execute(
            delete(Application).where(Application.user_id == account.id)
        )
        await self._session.delete(account)
        await self._session.flush()
        return int(result.rowcount or 0)

    async def record_activity(self, user_id: str, action: str, description: str) -> ActivityLog:
        """Append an activity log entry for the account."""

        entry = ActivityLog(user_id=user_id, action=action, description=description)
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def flush(self) -> None:
        """Flush pending changes to the database."""

        await self._session.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""

        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""

        await self._session.rollback()


__all__ = ["AuthRepository"]
