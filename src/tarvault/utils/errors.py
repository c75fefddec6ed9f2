class VaultError(Exception):
    """Base class for every failure that ends an invocation with status 1."""
    exit_code = 1


class UsageError(VaultError):
    """Bad or conflicting command line flags. Raised before any I/O."""


class MissingDependency(VaultError):
    """A required external utility is not installed."""


class NotFound(VaultError):
    """No vault entry exists for the requested key."""


class PipelineFailure(VaultError):
    """The archive or the encryption stage reported an error."""


class AuthFailure(PipelineFailure):
    """Wrong passphrase on decrypt."""
