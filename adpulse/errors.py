"""
Error taxonomy for the sync engine, secret vault and Graph API client.

Recoverable errors (connectivity, a single ad account failing) are absorbed
where they happen and logged. Only user-initiated actions surface them.
"""


class AdPulseError(Exception):
    """Base class for domain errors."""


class ConnectivityError(AdPulseError):
    """The ads platform could not be reached at the transport level."""


class CredentialError(AdPulseError):
    """An integration credential is missing, undecodable or rejected."""


class DecodeError(AdPulseError):
    """A stored secret is not in the expected reversible-encoding format."""


class MetaAPIError(AdPulseError):
    """The Graph API answered with a non-2xx status or an ``error`` body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PartialFetchFailure(AdPulseError):
    """One ad account could not be fetched during a sync run."""

    def __init__(self, account_id: str, client_id: str, message: str):
        super().__init__(f"{account_id}: {message}")
        self.account_id = account_id
        self.client_id = client_id
        self.message = message


class SyncFailedError(AdPulseError):
    """A manual forced sync produced no data because every account failed."""

    def __init__(self, failures: list[PartialFetchFailure]):
        super().__init__(f"Sync failed for all {len(failures)} ad account(s)")
        self.failures = failures


class AssignmentConflictError(AdPulseError):
    """A campaign id is already assigned to another client."""

    def __init__(self, campaign_ids: list[str]):
        super().__init__(f"Campaign(s) already assigned to another client: {', '.join(campaign_ids)}")
        self.campaign_ids = campaign_ids
