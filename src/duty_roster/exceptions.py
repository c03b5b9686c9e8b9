"""
Exception hierarchy for the Duty Roster system.
"""


class DataManagerError(Exception):
    """Base exception for roster operations"""
    pass


class DataFileCorruptedError(DataManagerError):
    """Raised when the data file is corrupted"""
    pass


class DataSaveError(DataManagerError):
    """Raised when saving data fails"""
    pass


class DataValidationError(DataManagerError):
    """Raised when data validation fails"""
    pass


class StoreUnavailableError(DataManagerError):
    """Raised when the remote document store cannot be reached"""
    pass


class ValidationError(DataManagerError):
    """Raised when a request is rejected before touching the schedule"""
    pass


class EmptyPatternError(ValidationError):
    """Raised when a pattern has no usable segments"""
    pass


class UnresolvedSegmentError(ValidationError):
    """Raised when a pattern segment matches no shift type"""

    def __init__(self, segment: str):
        self.segment = segment
        super().__init__(f"Could not identify shift '{segment}'. Check the shift type codes.")


class InvalidDateRangeError(ValidationError):
    """Raised when a generation range is empty or reversed"""
    pass


class EmptyTargetError(ValidationError):
    """Raised when no employee is targeted by a generation"""
    pass


class SwapStateError(DataManagerError):
    """Raised when a swap is resolved without exactly two selections"""
    pass


class NothingToTransferError(ValidationError):
    """Raised when the petitioner of a transfer has no shift to give away"""
    pass


class IncorrectSecretError(DataManagerError):
    """Raised when the clear-all secret does not match"""
    pass
