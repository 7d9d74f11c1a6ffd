"""
Module: connectors.user_directory

Fixed demo accounts with a plain credential check. Stands in for a real
identity provider.
"""

import logging

from models.inventory import User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Looks up demo users by e-mail and password."""

    _accounts: dict[str, tuple[str, User]] = {
        "maria@yaronapharmacy.com": (
            "password",
            User(
                id="1",
                code="user_001",
                name="Maria Santos",
                email="maria@yaronapharmacy.com",
                business_name="Yarona Pharmacy",
            ),
        ),
        "john@healthplus.com": (
            "password",
            User(
                id="2",
                code="user_002",
                name="John Dela Cruz",
                email="john@healthplus.com",
                business_name="HealthPlus Clinic",
            ),
        ),
    }

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the matching user, or None for unknown e-mail or wrong password."""
        account = self._accounts.get(email.strip().lower())
        if account is None or account[0] != password:
            logger.info(f"Rejected login for {email}")
            return None
        return account[1].model_copy()
