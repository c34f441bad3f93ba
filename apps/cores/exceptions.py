from rest_framework import status
from rest_framework.exceptions import APIException


class EscrowError(APIException):
    """
    Base class for milestone escrow failures.
    Rendered by DRF as {"detail": ...} with the class status code.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Escrow operation failed."
    default_code = "escrow_error"


class NotFound(EscrowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class Forbidden(EscrowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden."
    default_code = "forbidden"


class InvalidInput(EscrowError):
    default_detail = "Invalid input."
    default_code = "invalid_input"


class SubmissionMismatch(EscrowError):
    default_detail = "Submission does not belong to milestone."
    default_code = "submission_mismatch"


class MissingProposalLink(EscrowError):
    default_detail = "Contract has no proposal."
    default_code = "missing_proposal_link"


class NoProposalMilestones(EscrowError):
    default_detail = "No milestones found for proposal."
    default_code = "no_proposal_milestones"


class AlreadyFinal(EscrowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Milestone is already final."
    default_code = "already_final"


class CurrencyMismatch(EscrowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Wallet currency does not match."
    default_code = "currency_mismatch"


class StoreFailure(EscrowError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Storage is temporarily unavailable. Retry later."
    default_code = "store_failure"
