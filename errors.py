"""Exceptions raised by tissue queries and sampling.

Every error derives from SamplingError so that callers can catch the whole family at once.
Cancelled is kept apart from the "bad input" errors: it means the caller aborted a scan.
"""


class SamplingError(Exception):
    """base class of every error raised by the sampling subsystem"""


class InvalidDimension(SamplingError, ValueError):
    """a position or rectangle corner is not 2 dimensional"""


class InfeasibleRegion(SamplingError):
    """no bucket of the tumor bounding box holds more than the requested number of cells"""


class NoBorderCellFound(SamplingError):
    """the border cell search ran out of attempts"""

    def __init__(self, message, attempts = None):
        super().__init__(message)
        self.attempts = attempts


class NoCellFound(SamplingError, LookupError):
    """a random draw was asked for a species that has no cell in the selected region"""


class UnknownSpeciesOrName(SamplingError, KeyError):
    """a species id, species name, mutant name or epigenetic state is not in the catalog"""

    def __str__(self):
        #KeyError quotes its argument, keep the message readable
        return str(self.args[0]) if self.args else ''


class Cancelled(SamplingError):
    """a long scan observed the caller's cancellation probe"""
