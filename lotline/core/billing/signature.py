from __future__ import annotations

import logging
from collections.abc import Sequence

import stripe

from lotline.core.config import Settings
from lotline.core.errors import AuthenticationError

logger = logging.getLogger(__name__)


class WebhookSignatureVerifier:
    def __init__(self, secrets: Sequence[str], tolerance_seconds: int = 300) -> None:
        self.secrets = [secret for secret in secrets if secret]
        self.tolerance_seconds = tolerance_seconds

    @classmethod
    def from_settings(cls, config: Settings) -> "WebhookSignatureVerifier":
        return cls(config.webhook_secrets(), config.webhook_signature_tolerance_seconds)

    def verify(self, raw_payload: bytes, signature_header: str | None) -> None:
        if not self.secrets:
            raise AuthenticationError("Stripe webhook secret is not configured")
        if not signature_header:
            raise AuthenticationError("Missing Stripe signature")

        try:
            payload = raw_payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AuthenticationError("Webhook payload is not valid UTF-8") from exc

        for secret in self.secrets:
            try:
                stripe.WebhookSignature.verify_header(
                    payload,
                    signature_header,
                    secret,
                    tolerance=self.tolerance_seconds,
                )
                return
            except stripe.SignatureVerificationError:
                continue

        logger.warning("Rejected billing webhook with an invalid Stripe signature")
        raise AuthenticationError("Invalid Stripe signature")
