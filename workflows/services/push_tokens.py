"""
Push-token lifecycle: issuing, reporting and sweeping device token leases.

A lease is the (token, expiration, last-validated) triple on a User. It is
created on registration, renewed by every successful liveness probe, and
cleared when the token expires, is malformed, or the gateway says the device
is gone.

The cleanup sweep is a batch job. It is idempotent and isolates failures per
user: one user's error is counted and reported, and the sweep moves on.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from shared.data_store import DataStore, get_data_store
from shared.errors import ForbiddenError, GatewayError, NotFoundError, ValidationError
from shared.models import Role, User
from shared.push_gateway import MockPushGateway, PushGateway, PushMessage, mask_token
from shared.templates import TOKEN_PROBE_BODY, TOKEN_PROBE_DATA

logger = logging.getLogger("push_tokens")


# Minimum whole days between two liveness probes of the same token
VALIDATION_INTERVAL_DAYS = 1

SECONDS_PER_DAY = 24 * 60 * 60

EPOCH = datetime(1970, 1, 1)


@dataclass
class CleanupReport:
    """Per-outcome tallies for one sweep."""
    expired: int = 0
    invalid_format: int = 0
    invalid_token: int = 0
    validated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {
                "expired": self.expired,
                "invalidFormat": self.invalid_format,
                "invalidToken": self.invalid_token,
                "validated": self.validated,
                "skipped": self.skipped,
                "failed": self.failed,
                "total": self.total,
            },
            "errors": self.errors,
        }


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Elapsed whole days, rounded down."""
    return int((later - earlier).total_seconds() // SECONDS_PER_DAY)


class PushTokenService:
    """
    Manages push-token leases.

    Example:
        service = PushTokenService(data_store, gateway)
        service.register_token(user_id, "ExponentPushToken[abc]")
        report = service.cleanup_tokens()
    """

    def __init__(
        self,
        data_store: Optional[DataStore] = None,
        gateway: Optional[PushGateway] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.data_store = data_store or get_data_store()
        self.gateway = gateway or MockPushGateway()
        self.clock = clock

    def register_token(self, user_id: str, token: str, actor: Optional[User] = None) -> User:
        """
        Issue or refresh a user's lease for `token`.

        Raises:
            ValidationError: If either value is missing or the token is malformed
            NotFoundError: If the user does not exist
            ForbiddenError: If the user is not a regular user, or the actor is someone else
        """
        if not user_id or not token:
            raise ValidationError("Missing data")

        if actor is not None and actor.id != user_id:
            raise ForbiddenError("You can only register a push token for your own account")

        user = self.data_store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if user.role != Role.USER:
            raise ForbiddenError("Only regular users can register push tokens.")

        if not self.gateway.is_push_token(token):
            raise ValidationError("Invalid push token format")

        user.set_push_token(token, now=self.clock())
        self.data_store.save_user(user)
        logger.info(f"Push token saved for user {user.id}: {mask_token(token)}, expires {user.push_token_expires}")
        return user

    def token_status(self, user_id: str, actor: Optional[User] = None) -> dict[str, Any]:
        """
        Describe a user's lease without exposing the full token.

        Raises:
            NotFoundError: If the user does not exist
            ForbiddenError: If a non-admin actor asks about someone else
        """
        if actor is not None and not actor.is_admin() and actor.id != user_id:
            raise ForbiddenError("You can only view your own token status")

        user = self.data_store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if not user.push_token:
            return {
                "status": "no_token",
                "message": "No push token registered for this user",
            }

        now = self.clock()
        days_left = 0
        if user.push_token_expires:
            days_left = whole_days_between(now, user.push_token_expires)

        return {
            "status": "expired" if user.is_push_token_expired(now) else "valid",
            "token": mask_token(user.push_token),
            "expiresAt": user.push_token_expires,
            "daysUntilExpiration": max(0, days_left),
            "lastValidated": user.push_token_last_validated,
        }

    # =========================================================================
    # Cleanup sweep
    # =========================================================================

    def cleanup_tokens(self) -> CleanupReport:
        """
        Sweep every user holding a token.

        For each lease, in order:
        - expired: clear it
        - malformed token: clear it
        - not probed for VALIDATION_INTERVAL_DAYS: send a silent probe; an
          error ticket clears the lease, anything else renews it
        - otherwise: skip

        A gateway outage during a probe counts as failed and leaves the lease
        as it was, so the next sweep tries again.
        """
        users = self.data_store.get_users_with_push_token()
        report = CleanupReport(total=len(users))
        now = self.clock()

        logger.info(f"Token cleanup started: {len(users)} users with push tokens")

        for user in users:
            try:
                self._sweep_user(user, now, report)
            except Exception as e:
                report.failed += 1
                report.errors.append({"userId": user.id, "error": str(e)})
                logger.error(f"Token cleanup failed for user {user.id}: {e}")

        logger.info(
            f"Token cleanup complete: expired={report.expired}, "
            f"invalidFormat={report.invalid_format}, invalidToken={report.invalid_token}, "
            f"validated={report.validated}, skipped={report.skipped}, failed={report.failed}"
        )
        return report

    def _sweep_user(self, user: User, now: datetime, report: CleanupReport) -> None:
        if user.is_push_token_expired(now):
            logger.info(f"Expired token for user {user.id}, expired on {user.push_token_expires}")
            self._clear(user)
            report.expired += 1
            return

        if not self.gateway.is_push_token(user.push_token):
            logger.info(f"Invalid token format for user {user.id}: {mask_token(user.push_token)}")
            self._clear(user)
            report.invalid_format += 1
            return

        days_since = whole_days_between(user.push_token_last_validated or EPOCH, now)
        if days_since < VALIDATION_INTERVAL_DAYS:
            logger.debug(f"Skipping user {user.id}, validated {days_since} days ago")
            report.skipped += 1
            return

        logger.info(f"Validating token for user {user.id}, last validated {days_since} days ago")
        probe = PushMessage(to=user.push_token, body=TOKEN_PROBE_BODY, data=dict(TOKEN_PROBE_DATA), sound=None)
        try:
            tickets = self.gateway.send([probe])
        except GatewayError as e:
            report.failed += 1
            report.errors.append({"userId": user.id, "error": e.message})
            logger.error(f"Probe for user {user.id} not delivered: {e.message}")
            return

        ticket = tickets[0] if tickets else None
        if ticket is not None and not ticket.ok:
            logger.info(f"Invalid token for user {user.id}: {ticket.message}")
            report.errors.append({"userId": user.id, "error": ticket.message or "delivery error"})
            self._clear(user)
            report.invalid_token += 1
            return

        user.mark_token_as_validated(now)
        self.data_store.save_user(user)
        report.validated += 1

    def _clear(self, user: User) -> None:
        user.clear_push_token()
        self.data_store.save_user(user)
