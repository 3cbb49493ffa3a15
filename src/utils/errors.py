"""Error handling utilities."""


class DashboardError(Exception):
    """Base exception for the academic dashboard backend."""
    status_code = 500


class ValidationError(DashboardError):
    """Missing or malformed field supplied by the caller."""
    status_code = 400


class IntegrationNotConfiguredError(DashboardError):
    """Integration credentials are absent from the environment."""
    status_code = 400


class UnauthorizedError(DashboardError):
    """No calendar session, or the provider rejected the stored token."""
    status_code = 401


class NotFoundError(DashboardError):
    """No record for the requested id."""
    status_code = 404


class ExternalServiceError(DashboardError):
    """Upstream provider (Canvas, Google) failure."""
    status_code = 500


class PersistenceError(DashboardError):
    """Supabase operation error."""
    status_code = 503
