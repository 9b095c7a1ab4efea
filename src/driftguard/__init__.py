"""DriftGuard: tag and NSG drift audit and remediation for Azure."""

__version__ = "1.0.0"
