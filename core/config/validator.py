"""
Configuration validation at application startup.

Checks endpoint URLs, the credential store location and logging settings
before any component touches the network, so misconfiguration surfaces as a
readable message instead of a failed request later on.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import urlparse

from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check"""
    is_valid: bool
    component: str
    message: str
    severity: str = "error"  # "error", "warning", "info"


class ConfigurationValidator:
    """Startup configuration validator."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.validation_results: List[ValidationResult] = []

    def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            bool: True if no error-level check failed
        """
        logger.info("🔍 Validating configuration...")

        self._validate_api_settings()
        self._validate_stream_settings()
        self._validate_credential_path()
        self._validate_reconnection_settings()
        self._validate_logging_settings()

        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        if errors:
            logger.error(f"❌ Configuration validation failed: {len(errors)} errors, {len(warnings)} warnings")
            for result in errors:
                logger.error(f"   ERROR [{result.component}]: {result.message}")

        for result in warnings:
            logger.warning(f"   WARNING [{result.component}]: {result.message}")

        if not errors and not warnings:
            logger.info("✅ All configuration validation checks passed")
        elif not errors:
            logger.info(f"✅ Configuration validation passed with {len(warnings)} warnings")

        return len(errors) == 0

    def _add(self, is_valid: bool, component: str, message: str, severity: str = "error"):
        self.validation_results.append(ValidationResult(
            is_valid=is_valid,
            component=component,
            message=message,
            severity=severity,
        ))

    def _validate_api_settings(self):
        parsed = urlparse(self.settings.api.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self._add(False, "API", f"Invalid API base URL: {self.settings.api.base_url}")
        elif parsed.scheme == "http" and self.settings.environment == "production":
            self._add(False, "API", "Plain HTTP API endpoint used in production", severity="warning")

        if self.settings.api.timeout_seconds <= 0:
            self._add(False, "API", "Request timeout must be positive")

    def _validate_stream_settings(self):
        parsed = urlparse(self.settings.stream.url)
        if parsed.scheme not in ("ws", "wss") or not parsed.netloc:
            self._add(False, "Stream", f"Invalid stream URL: {self.settings.stream.url}")

        symbols = self.settings.symbols
        if len(set(symbols)) != len(symbols):
            self._add(False, "Stream", f"Duplicate instrument symbols configured: {symbols}", severity="warning")

    def _validate_credential_path(self):
        path = self.settings.credentials.resolved_path
        if path.exists() and path.is_dir():
            self._add(False, "Credentials", f"Credential path is a directory: {path}")
            return

        # The parent is created on first save; only flag paths that can never be created
        existing = next((p for p in [path.parent, *path.parent.parents] if p.exists()), None)
        if existing is not None and not existing.is_dir():
            self._add(False, "Credentials", f"Credential path is blocked by a file: {existing}")

    def _validate_reconnection_settings(self):
        reconnection = self.settings.reconnection
        if not reconnection.enabled:
            return
        if reconnection.max_attempts < 1:
            self._add(False, "Reconnection", "max_attempts must be at least 1 when reconnection is enabled")
        if reconnection.backoff_multiplier < 1.0:
            self._add(False, "Reconnection", "backoff_multiplier below 1.0 shrinks delays", severity="warning")

    def _validate_logging_settings(self):
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        if self.settings.logging.level.upper() not in valid_log_levels:
            self._add(False, "Logging", f"Invalid log level: {self.settings.logging.level}")

        if self.settings.logging.file_enabled:
            logs_dir = Path(self.settings.logs_dir)
            if not logs_dir.parent.exists():
                self._add(False, "Logging", f"Parent directory for logs does not exist: {logs_dir.parent}")

    def get_validation_summary(self) -> Dict[str, Any]:
        """Get a summary of validation results"""
        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        return {
            "total_checks": len(self.validation_results),
            "errors": len(errors),
            "warnings": len(warnings),
            "is_valid": len(errors) == 0,
            "error_details": [{"component": r.component, "message": r.message} for r in errors],
            "warning_details": [{"component": r.component, "message": r.message} for r in warnings]
        }


def validate_startup_configuration(settings: Settings) -> bool:
    """Convenience function to run startup configuration validation."""
    validator = ConfigurationValidator(settings)
    return validator.validate_all()
