"""Exception types shared by the services and mapped to HTTP status codes by the routers."""


class FetchError(Exception):
    """The target page could not be fetched or rendered."""


class FetchTimeoutError(FetchError):
    """Fetching or rendering the target page exceeded its deadline."""


class UpstreamError(Exception):
    """A call to the primary store, Airtable, or the email API failed."""

    def __init__(self, message: str, *, kind: str = "upstream", detail: object = None):
        super().__init__(message)
        self.kind = kind
        self.detail = detail


class NotFoundError(Exception):
    """A referenced row does not exist in the primary store."""


class SyncError(Exception):
    """A row could not be reconciled into the destination store."""

    def __init__(self, mapping: str, key: object, cause: Exception):
        super().__init__(f"Sync '{mapping}' failed on row {key!r}: {cause}")
        self.mapping = mapping
        self.key = key
        self.cause = cause
