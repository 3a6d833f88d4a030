# classbook/repositories/membership_repository.py
"""
Access to membership tiers and session credits.

Tiers are read-only here. Session credits are debited when a hold is
created and credited back when the hold expires or is cancelled, always with
single guarded UPDATE statements.
"""

from datetime import datetime
import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.membership import SessionCredit, UserMembership
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MembershipRepository(BaseRepository[UserMembership]):
    def __init__(self, db: Session):
        super().__init__(db, UserMembership)
        self.logger = logging.getLogger(__name__)

    def get_membership(self, user_id: str) -> Optional[UserMembership]:
        try:
            return self.db.get(UserMembership, user_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading membership of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load membership: {str(e)}") from e

    def get_active_credit(self, user_id: str, now: datetime) -> Optional[SessionCredit]:
        """The unexpired credit that expires first, if any."""
        try:
            stmt = (
                select(SessionCredit)
                .where(SessionCredit.user_id == user_id, SessionCredit.expires_at >= now)
                .order_by(SessionCredit.expires_at.asc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading session credit of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load session credit: {str(e)}") from e

    def try_use_sessions(self, credit_id: str, sessions: int) -> bool:
        """Debit `sessions` from the credit if its balance covers them."""
        try:
            stmt = (
                update(SessionCredit)
                .where(SessionCredit.id == credit_id, SessionCredit.session_count >= sessions)
                .values(session_count=SessionCredit.session_count - sessions)
                .execution_options(synchronize_session=False)
            )
            return self.db.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error debiting session credit {credit_id}: {str(e)}")
            raise RepositoryException(f"Failed to use sessions: {str(e)}") from e

    def restore_sessions(self, credit_id: str, sessions: int) -> bool:
        try:
            stmt = (
                update(SessionCredit)
                .where(SessionCredit.id == credit_id)
                .values(session_count=SessionCredit.session_count + sessions)
                .execution_options(synchronize_session=False)
            )
            return self.db.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error restoring session credit {credit_id}: {str(e)}")
            raise RepositoryException(f"Failed to restore sessions: {str(e)}") from e
