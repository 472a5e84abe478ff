"""
Startup validation run by the worker before its first sync pass.

Checks the chain endpoint, the database settings and the tracked-contract
configuration, collecting critical errors and non-critical warnings.
"""

import os
import sys
from typing import List, Optional

from event_mirror.utils.logger import logger


class StartupValidator:
    """Startup validation for the mirror worker."""

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False):
        self.config_path = config_path
        self.dry_run = dry_run
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            True if all critical checks pass, False otherwise.
        """
        logger.info("StartupValidator: Beginning system validation")

        self._validate_chain_config()
        if not self.dry_run:
            self._validate_database_config()
        self._validate_mirror_config()
        self._validate_optional_config()

        self._report_results()
        return len(self.errors) == 0

    def _validate_chain_config(self) -> None:
        uri = os.environ.get("WEB3_PROVIDER_URI")
        if not uri:
            self.warnings.append("WEB3_PROVIDER_URI not set, defaulting to http://localhost:8545")
        elif not uri.startswith(("http://", "https://")):
            self.errors.append(f"WEB3_PROVIDER_URI must be an HTTP(S) endpoint, got: {uri}")

    def _validate_database_config(self) -> None:
        from event_mirror.config.database_config import validate_database_environment
        if not validate_database_environment():
            self.errors.append("Database configuration validation failed")
        else:
            logger.info("StartupValidator: Database configuration validation passed")

    def _validate_mirror_config(self) -> None:
        from event_mirror.config.descriptors import load_mirror_config
        if not self.config_path:
            self.errors.append("No mirror configuration file given (MIRROR_CONFIG_PATH or --config)")
            return
        try:
            config = load_mirror_config(self.config_path)
        except (FileNotFoundError, ValueError, OSError) as e:
            self.errors.append(f"Mirror configuration invalid: {e}")
            return

        if not config.contracts:
            self.warnings.append("Mirror configuration lists no contracts")
        for descriptor in config.contracts:
            if not descriptor.collective_id:
                self.errors.append(f"Contract {descriptor.public_address} has no collectiveId")
            if not descriptor.map:
                self.warnings.append(f"Contract {descriptor.public_address} has an empty event map")

    def _validate_optional_config(self) -> None:
        optional_configs = {
            "START_BLOCK": "First scanned block (defaults to 5000000)",
            "CHAIN_REQUEST_TIMEOUT": "Node request timeout (defaults to 30s)",
        }
        for var, description in optional_configs.items():
            if not os.environ.get(var):
                self.warnings.append(f"Optional config {var} not set: {description}")

    def _report_results(self) -> None:
        if self.errors:
            logger.error("StartupValidator: %d critical errors found:", len(self.errors))
            for error in self.errors:
                logger.error("  - %s", error)

        if self.warnings:
            logger.warning("StartupValidator: %d warnings found:", len(self.warnings))
            for warning in self.warnings:
                logger.warning("  - %s", warning)

        if not self.errors and not self.warnings:
            logger.info("StartupValidator: All validation checks passed successfully")
        elif not self.errors:
            logger.info("StartupValidator: Critical validation passed with %d warnings", len(self.warnings))


def validate_startup(config_path: Optional[str] = None, dry_run: bool = False) -> bool:
    """Run startup validation and return success status."""
    return StartupValidator(config_path, dry_run).validate_all()


def validate_or_exit(config_path: Optional[str] = None, dry_run: bool = False) -> None:
    """Run startup validation and exit if critical errors are found."""
    if not validate_startup(config_path, dry_run):
        logger.error("StartupValidator: Critical validation errors found. Exiting.")
        sys.exit(1)

    logger.info("StartupValidator: System validation completed successfully")
