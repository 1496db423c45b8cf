# llave_system/errors.py
"""
Error taxonomy for the Llave engine.

ValidationError is raised at the boundary for malformed input.
DataIntegrityError is raised for internally inconsistent state; it is never
recovered silently because that would produce wrong financial numbers.
"""


class LlaveError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(LlaveError):
    """Malformed input: negative sales, missing required fields."""
    pass


class DataIntegrityError(LlaveError):
    """Inconsistent state: cyclic parent graph, missing snapshot, unknown ids."""
    pass


class CampaignFullError(ValidationError):
    """Campaign already has the maximum number of active participants."""
    pass


class NotCampaignOwnerError(LlaveError):
    """Only the campaign owner may manage membership and status."""
    pass
