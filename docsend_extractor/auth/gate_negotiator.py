"""
Gate Negotiator
===============
Unlocks a gated document by walking its authentication gates.

Handles:
    - Email gate (fill, submit, detect rejection / verification demand)
    - Passcode gate (fill, submit, wait for the field to disappear)

Every wait is bounded and a timeout is treated as "probably done": the
next stage (page counting) fails explicitly if the gate was not passed.

Security:
    - Credentials are never logged or printed.
    - Only gate presence and the outcome appear in logs.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..browser import BrowserSession
from ..config import ExtractorConfig
from ..errors import (
    EmailRejected,
    EmailVerificationRequired,
    MissingEmail,
    MissingPasscode,
)
from ..models import Credentials

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Gate selectors and messages (the viewer is served in English and German)
# ---------------------------------------------------------------------------

EMAIL_INPUT = 'input[name="link_auth_form[email]"]'
EMAIL_SUBMIT = '#new_link_auth_form button[type="submit"]'

PASSCODE_INPUT = 'input[type="password"]'
PASSCODE_SUBMIT = '#new_link_auth_form button[type="submit"], form button[type="submit"]'

# Anything the page may show once the email form was processed
_EMAIL_OUTCOME_TEXT = r"gültige E-Mail|valid email|bestätigen|verify"

_EMAIL_INVALID_TEXT = r"gültige E-Mail|valid email"

_VERIFY_PAGE_TEXT = r"Bestätigungs|bestätigen Sie|confirmation|verify your"

VERIFY_BUTTON = (
    'button:has-text("verify"), button:has-text("bestätigen"), '
    'button:has-text("klicken Sie hier")'
)


class GateNegotiator:
    """Drives a ``BrowserSession`` through the email and passcode gates.

    Usage::

        negotiator = GateNegotiator(config)
        await negotiator.negotiate(session, Credentials(passcode="s3cret"))
    """

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self.config = config or ExtractorConfig()

    async def negotiate(
        self, session: BrowserSession, credentials: Optional[Credentials] = None
    ) -> None:
        """Return once the document is reachable; raise on a fatal gate outcome."""
        credentials = credentials or Credentials()
        await self._pass_email_gate(session, credentials.email)
        await self._pass_passcode_gate(session, credentials.passcode)

    # ------------------------------------------------------------------
    # Email gate
    # ------------------------------------------------------------------

    async def _pass_email_gate(self, session: BrowserSession, email: Optional[str]) -> None:
        if not await session.is_visible(EMAIL_INPUT):
            return

        logger.info("[AUTH] Email gate detected")
        if not email:
            raise MissingEmail()

        await session.fill(EMAIL_INPUT, email)
        await session.submit(EMAIL_SUBMIT, self.config.navigation_timeout_ms)

        settled = await session.wait_until_gone(
            EMAIL_INPUT, self.config.email_wait_ms, or_text=_EMAIL_OUTCOME_TEXT
        )
        if not settled:
            logger.debug("[AUTH] Email gate wait timed out, continuing")

        if await session.has_visible_text(_EMAIL_INVALID_TEXT):
            # A rejected address can often be confirmed by mail instead
            if await session.is_visible(VERIFY_BUTTON):
                await session.click(VERIFY_BUTTON)
                await session.sleep(self.config.verify_click_wait_ms)
                logger.error("[AUTH] Email needs confirmation, verification mail requested")
                raise EmailVerificationRequired(
                    "A confirmation email was sent. Click the link in it, "
                    "then submit the document again."
                )
            logger.error("[AUTH] Email address rejected")
            raise EmailRejected()

        if await session.has_visible_text(_VERIFY_PAGE_TEXT):
            logger.error("[AUTH] Email verification page shown")
            raise EmailVerificationRequired()

        logger.info("[AUTH] Email gate passed")

    # ------------------------------------------------------------------
    # Passcode gate
    # ------------------------------------------------------------------

    async def _pass_passcode_gate(self, session: BrowserSession, passcode: Optional[str]) -> None:
        if not await session.is_visible(PASSCODE_INPUT):
            return

        logger.info("[AUTH] Passcode gate detected")
        if not passcode:
            raise MissingPasscode()

        await session.fill(PASSCODE_INPUT, passcode)
        await session.submit(PASSCODE_SUBMIT, self.config.navigation_timeout_ms)

        if await session.wait_until_gone(PASSCODE_INPUT, self.config.passcode_wait_ms):
            logger.info("[AUTH] Passcode gate passed")
        else:
            # Wrong passcodes surface as PageCountUnknown in the next stage
            logger.warning("[AUTH] Passcode field still visible, continuing")
