class RegistryError(Exception):
    """Base class for every error raised by the welfare registry."""


class NotFoundError(RegistryError):
    """A record looked up by id does not exist (or is not owned by the caller)."""


class StructuralError(RegistryError):
    """
    A record references a member or admin that cannot be resolved.

    Structural errors are not transient: the record is skipped and reported,
    never retried.
    """


class TransientDeliveryError(RegistryError):
    """A delivery failed in a way that may succeed on a later attempt."""


class TransportError(TransientDeliveryError):
    """The mail transport rejected or failed to deliver a single message."""


class ConfigurationError(TransportError):
    """The mail transport is not usable at all (missing credentials, unknown provider)."""


class RunInProgressError(RegistryError):
    """A reminder run was requested while another one is still running."""
