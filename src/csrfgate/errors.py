class CsrfConfigError(ValueError):
    """Raised while the application is being configured, never per request."""
