class LoanDeskError(Exception):
    """Base for errors reported to the caller; nothing has been written when one is raised."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LoanDeskError):
    status_code = 404


class PreconditionError(LoanDeskError):
    """Wrong workflow state, payment beyond balance, or a delete blocked by dependents."""

    status_code = 400
