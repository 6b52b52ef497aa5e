from __future__ import annotations

import pytest
from pydantic import ValidationError as SettingsValidationError

from lotline.core.config import Settings


def test_webhook_test_mode_is_refused_in_production() -> None:
    with pytest.raises(SettingsValidationError):
        Settings(environment="production", webhook_test_mode=True, stripe_test_webhook_secret="whsec_test")


def test_webhook_secrets_include_test_secret_only_in_test_mode() -> None:
    live_only = Settings(stripe_webhook_secret="whsec_live", stripe_test_webhook_secret="whsec_test")
    with_test = Settings(
        environment="staging",
        stripe_webhook_secret="whsec_live",
        stripe_test_webhook_secret="whsec_test",
        webhook_test_mode=True,
    )

    assert live_only.webhook_secrets() == ["whsec_live"]
    assert with_test.webhook_secrets() == ["whsec_live", "whsec_test"]


def test_super_admin_subjects_parsing() -> None:
    assert Settings(super_admin_subjects_csv="").super_admin_subjects() == set()
    assert Settings(super_admin_subjects_csv=" a, b ,,c").super_admin_subjects() == {"a", "b", "c"}


def test_production_aliases() -> None:
    assert Settings(environment="PROD").is_production is True
    assert Settings(environment="development").is_production is False
