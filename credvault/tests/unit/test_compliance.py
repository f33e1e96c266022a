"""
Credentials compliance report tests.
"""

from datetime import datetime, timezone

import pytest

from credvault.credentials.compliance import (
    build_credentials_compliance_report,
    classify_integration_exposure,
)


def _integration(**overrides):
    item = {
        "id": "i-1",
        "tenant_id": "tenant-1",
        "provider": "META",
        "status": "CONNECTED",
        "updated_at": datetime(2026, 2, 19, 10, 0, tzinfo=timezone.utc),
        "access_token": None,
        "refresh_token": None,
        "access_token_encrypted": None,
        "settings": None,
        "config": None,
    }
    item.update(overrides)
    return item


@pytest.fixture
def integrations():
    return [
        _integration(
            id="i-1",
            provider="META",
            access_token="raw-token",
            config={"credentialRef": "vault://credential/1"},
        ),
        _integration(
            id="i-2",
            provider="GA4",
            config={"credentialsRefs": {"refreshToken": "vault://credential/2"}},
        ),
        _integration(
            id="i-3",
            provider="WHATSAPP",
            settings={"verifyToken": "raw-verify-token"},
        ),
    ]


class TestClassifyIntegrationExposure:

    def test_raw_columns(self):
        exposure = classify_integration_exposure(_integration(access_token_encrypted="blob"))
        assert exposure["has_raw_columns"]
        assert exposure["is_exposed"]

    def test_reference_only(self):
        exposure = classify_integration_exposure(
            _integration(config={"credentialRef": "vault://credential/1"})
        )
        assert exposure == {
            "has_raw_columns": False,
            "has_raw_settings": False,
            "has_raw_config": False,
            "has_credential_ref": True,
            "is_exposed": False,
        }

    def test_empty_credentials_refs_not_counted(self):
        exposure = classify_integration_exposure(_integration(config={"credentialsRefs": {}}))
        assert not exposure["has_credential_ref"]

    def test_raw_config_key(self):
        exposure = classify_integration_exposure(_integration(config={"apiKey": "x"}))
        assert exposure["has_raw_config"]

    def test_list_settings_ignored(self):
        exposure = classify_integration_exposure(_integration(settings=[{"token": "x"}]))
        assert not exposure["has_raw_settings"]


class TestComplianceReport:

    def test_totals(self, integrations):
        report = build_credentials_compliance_report(
            integrations,
            vault_count=5,
            vault_by_provider={"META": 2, "GA4": 3},
            tenant_id="tenant-1",
        )

        assert report["tenant_id"] == "tenant-1"
        assert report["totals"] == {
            "integrations": 3,
            "integrations_exposed": 2,
            "integrations_with_credential_ref": 2,
            "vault_entries": 5,
            "raw_columns": 1,
            "raw_settings": 1,
            "raw_config": 0,
        }
        assert report["vault_by_provider"] == {"META": 2, "GA4": 3}

    def test_by_provider(self, integrations):
        report = build_credentials_compliance_report(integrations, vault_count=0)
        assert report["by_provider"]["META"] == {"total": 1, "exposed": 1, "with_credential_ref": 1}
        assert report["by_provider"]["GA4"] == {"total": 1, "exposed": 0, "with_credential_ref": 1}

    def test_samples_never_include_secret_values(self, integrations):
        report = build_credentials_compliance_report(integrations, vault_count=0)
        samples = report["samples"]["exposed_integrations"]

        assert [s["id"] for s in samples] == ["i-1", "i-3"]
        assert "raw-token" not in str(samples)
        assert "raw-verify-token" not in str(samples)

    @pytest.mark.parametrize("sample_size,expected", [
        (1, 1), (0, 1), (500, 2), ("bad", 2), ("1.7", 1), (float("nan"), 2), ("inf", 2),
    ])
    def test_sample_size_clamped(self, integrations, sample_size, expected):
        report = build_credentials_compliance_report(
            integrations, vault_count=0, sample_size=sample_size
        )
        assert len(report["samples"]["exposed_integrations"]) == expected

    def test_unknown_provider_bucket(self):
        report = build_credentials_compliance_report(
            [_integration(provider=None)], vault_count=0, vault_by_provider={None: 4}
        )
        assert "UNKNOWN" in report["by_provider"]
        assert report["vault_by_provider"] == {"UNKNOWN": 4}
