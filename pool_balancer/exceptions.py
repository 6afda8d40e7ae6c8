# exceptions.py

"""Custom exceptions for the pool VM balancer."""

class BalancerError(Exception):
    """Base exception for balancer errors."""
    pass

class ConfigurationError(BalancerError):
    """Exception for configuration-related errors."""
    pass

class StatsError(BalancerError):
    """Exception for missing or unusable resource statistics."""
    pass

class MigrationError(BalancerError):
    """Exception for migration-related errors."""
    pass

class OpenStackError(BalancerError):
    """Exception for OpenStack-related errors."""
    pass
