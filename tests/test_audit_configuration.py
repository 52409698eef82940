"""
Tests for process-wide audit configuration and scope creation.
"""

import threading

import pytest

from packages.audit_core import (
    ActionType,
    AuditConfigurationError,
    EventCreationPolicy,
    configure,
    create_scope,
    get_audit_configuration,
    is_configured,
)
from packages.audit_store import InMemoryStorageProvider


class TestConfigure:
    """Tests for configure/get_audit_configuration."""

    def test_get_before_configure_raises(self) -> None:
        """Test reading the configuration before it is installed."""
        assert not is_configured()
        with pytest.raises(AuditConfigurationError):
            get_audit_configuration()

    def test_configure_installs_provider_and_policy(self, provider) -> None:
        """Test configure returns the installed configuration."""
        configuration = configure(provider, EventCreationPolicy.MANUAL)

        assert is_configured()
        assert get_audit_configuration() is configuration
        assert configuration.data_provider is provider
        assert configuration.creation_policy is EventCreationPolicy.MANUAL

    def test_configure_twice_raises(self, provider) -> None:
        """Test configuration is init-once."""
        configure(provider)

        with pytest.raises(AuditConfigurationError, match="already installed"):
            configure(InMemoryStorageProvider())

        assert get_audit_configuration().data_provider is provider

    def test_concurrent_configure_installs_once(self) -> None:
        """Test only one of several racing configure calls wins."""
        errors = []

        def install() -> None:
            try:
                configure(InMemoryStorageProvider())
            except AuditConfigurationError as e:
                errors.append(e)

        threads = [threading.Thread(target=install) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(errors) == 7


class TestCreateScope:
    """Tests for create_scope default resolution."""

    def test_uses_configured_defaults(self, provider) -> None:
        """Test provider and policy come from the configuration."""
        configure(provider, EventCreationPolicy.INSERT_ON_START)

        scope = create_scope("X", {"k": "v"})

        assert scope.policy is EventCreationPolicy.INSERT_ON_START
        assert provider.operations == ["insert"]
        assert provider.snapshots[0]["custom_fields"] == {"k": "v"}

    def test_explicit_arguments_override_configuration(self, provider) -> None:
        """Test explicit provider and policy win over configured ones."""
        configured = InMemoryStorageProvider()
        configure(configured, EventCreationPolicy.INSERT_ON_START)

        scope = create_scope("X", policy=EventCreationPolicy.MANUAL, provider=provider)
        scope.save()

        assert configured.count() == 0
        assert provider.operations == ["insert"]

    def test_explicit_provider_without_configuration(self, provider) -> None:
        """Test scopes can be created without any global configuration."""
        scope = create_scope("X", provider=provider)
        scope.dispose()

        assert scope.policy is EventCreationPolicy.INSERT_ON_END
        assert provider.operations == ["insert"]

    def test_missing_provider_raises(self) -> None:
        """Test a provider is required when nothing is configured."""
        with pytest.raises(AuditConfigurationError):
            create_scope("X")

    def test_configured_custom_actions_apply(self, provider) -> None:
        """Test custom actions registered on the configuration reach new scopes."""
        configuration = configure(provider)
        configuration.add_custom_action(
            ActionType.ON_SCOPE_CREATED,
            lambda scope: scope.set_custom_field("tenant", "acme"),
        )

        scope = create_scope("X")
        scope.dispose()

        assert provider.snapshots[0]["custom_fields"] == {"tenant": "acme"}
