"""Tests for the application context."""

import dataclasses
from unittest.mock import Mock, patch

import pytest

from ledgerctl.core.context import ApplicationContext
from ledgerctl.core.enums import StoreBackend
from ledgerctl.core.types import LeaseConfig, LedgerCtlConfig, StoreConfig
from ledgerctl.registry.transaction import RegistryTransactionManager
from ledgerctl.storage import FileDocumentStore, InMemoryDocumentStore


class TestApplicationContext:
    """Test ApplicationContext class."""

    def test_for_testing(self, holder_a) -> None:
        """Test the test context uses memory storage and no renewal thread."""
        context = ApplicationContext.for_testing(holder=holder_a)

        assert isinstance(context.store, InMemoryDocumentStore)
        assert context.config.store.backend == StoreBackend.MEMORY
        assert context.lease_manager.renewal_service is None
        assert context.lease_manager.holder == holder_a

    def test_create_from_config(self, tmp_path, holder_a) -> None:
        """Test dependencies are built from configuration."""
        config = LedgerCtlConfig(
            lease=LeaseConfig(auto_renew=False),
            store=StoreConfig(backend=StoreBackend.FILE, root_dir=tmp_path),
        )

        context = ApplicationContext.create(config, logger=Mock(), holder=holder_a)

        assert isinstance(context.store, FileDocumentStore)
        assert context.store.root_dir == tmp_path
        assert context.holder == holder_a

    def test_username_override(self) -> None:
        """Test the configured username goes into the holder identity."""
        config = LedgerCtlConfig(
            lease=LeaseConfig(auto_renew=False, username="deployer"),
            store=StoreConfig(backend=StoreBackend.MEMORY),
        )
        assert ApplicationContext.create(config, logger=Mock()).holder.username == "deployer"

    @patch("ledgerctl.core.log.configure_logging")
    def test_configures_logging_without_logger(self, mock_configure) -> None:
        """Test logging is configured from config when no logger is injected."""
        config = LedgerCtlConfig(
            lease=LeaseConfig(auto_renew=False, username="deployer"),
            store=StoreConfig(backend=StoreBackend.MEMORY),
            log_level="DEBUG",
        )

        ApplicationContext.create(config)

        assert mock_configure.call_args.kwargs["level"] == "DEBUG"
        assert mock_configure.call_args.kwargs["enable_json"] is False

    def test_registry_manager(self, holder_a) -> None:
        context = ApplicationContext.for_testing(holder=holder_a)
        manager = context.registry_manager("ns1")

        assert isinstance(manager, RegistryTransactionManager)
        assert manager.scope == "ns1"

    def test_immutable(self, holder_a) -> None:
        context = ApplicationContext.for_testing(holder=holder_a)
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.holder = None
