"""
Exception types raised by the parsing pipeline
"""


class BatteryDataError(Exception):
    """Base class for battery data parsing errors"""


class InvalidFileHandleError(BatteryDataError, ValueError):
    """Raised when the caller passes no file content at all"""


class UnsupportedFormatError(BatteryDataError):
    """No parser could produce tabular rows from the file"""


class EmptyDatasetError(BatteryDataError):
    """No usable rows remained after normalization"""
