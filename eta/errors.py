class EtaError(Exception):
    """Base class for errors the ETA engine surfaces to its callers."""
    pass


class EtaNotFoundError(EtaError):
    """A referenced order, restaurant or rider does not exist."""
    pass


class OrderNotFoundError(EtaNotFoundError):
    pass


class RestaurantNotFoundError(EtaNotFoundError):
    pass


class RiderNotFoundError(EtaNotFoundError):
    pass


class EtaValidationError(EtaError):
    """An event payload is missing a required field or carries an invalid value."""
    pass


class OrderClosedError(EtaError):
    """The order is delivered or cancelled; its ETA no longer changes."""
    pass
