from typing import List


class PortalError(Exception):
    """Base class for every failure the portal reports to its callers."""


class ExtractionFailure(PortalError):
    pass


class PersistenceFailure(PortalError):
    pass


class RecordNotFound(PersistenceFailure):
    def __init__(self, invoice_id: str):
        super().__init__(f"Invoice '{invoice_id}' not found")
        self.invoice_id = invoice_id


class InvalidTransition(PortalError):
    def __init__(self, current, action):
        current_value = getattr(current, "value", current)
        action_value = getattr(action, "value", action)
        super().__init__(f"Cannot {action_value} an invoice in status '{current_value}'")
        self.current = current
        self.action = action


class FilingBlocked(PortalError):
    def __init__(self, pending: int, mismatch: int):
        super().__init__(
            f"Resolve {pending} Pending and {mismatch} Mismatch invoices before filing GSTR-3B"
        )
        self.pending = pending
        self.mismatch = mismatch


class PartialFilingFailure(PortalError):
    """Some filing updates failed. The ones that succeeded are left Filed."""

    def __init__(self, filed_ids: List[str], failed_ids: List[str]):
        super().__init__(
            f"Filing incomplete: {len(filed_ids)} filed, {len(failed_ids)} failed"
        )
        self.filed_ids = filed_ids
        self.failed_ids = failed_ids
