class RxSupplyError(Exception):
    """Base class for reorder-check failures."""


class DispatchError(RxSupplyError):
    """A combined notification could not be delivered."""


class ScanAbortedError(RxSupplyError):
    """Users or prescriptions could not be enumerated; the whole run stops."""
