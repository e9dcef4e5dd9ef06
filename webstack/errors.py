"""
Errors raised while composing the web-app stack.

Only the blueprint's own invariants are checked here. Failures reported by the
AWS provider or the Pulumi engine (naming collisions, quota limits, credential
generation) propagate unchanged.
"""


class ConfigurationError(ValueError):
    """
    The configuration snapshot cannot be composed into a stack.

    Raised before any resource is registered: wrong or missing data-tier
    sub-spec, unknown environment tag, malformed or duplicate routes.
    """
