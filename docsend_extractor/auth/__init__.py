"""
Authentication Package
======================
Gate negotiation for access-controlled documents.

Usage::

    from docsend_extractor.auth import GateNegotiator

    await GateNegotiator(config).negotiate(session, credentials)
"""

from .gate_negotiator import (
    EMAIL_INPUT,
    EMAIL_SUBMIT,
    PASSCODE_INPUT,
    PASSCODE_SUBMIT,
    VERIFY_BUTTON,
    GateNegotiator,
)

__all__ = [
    "GateNegotiator",
    "EMAIL_INPUT",
    "EMAIL_SUBMIT",
    "PASSCODE_INPUT",
    "PASSCODE_SUBMIT",
    "VERIFY_BUTTON",
]
