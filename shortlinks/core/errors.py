"""Domain errors raised by the core; the routers map them to HTTP statuses."""


class ShortlinksError(Exception):
    """Base class for every error the core raises on purpose."""


class InvalidFormat(ShortlinksError):
    """A requested code is not at least two alphanumeric characters."""


class CodeTaken(ShortlinksError):
    """A requested code is a reserved path or already bound to a live link."""


class DuplicateCode(ShortlinksError):
    """The link table already holds a live record for this code."""


class LinkNotFound(ShortlinksError):
    """No live record exists for this code."""


class PoolExhausted(ShortlinksError):
    """Every code in the pool has been handed out. Operator-fatal."""


class PersistenceError(ShortlinksError):
    """The durable pool or store could not be loaded."""


class UserExists(ShortlinksError):
    """An account with this name already exists."""


class PasswordTooLong(ShortlinksError):
    """The password exceeds the 72 bytes bcrypt can hash."""
