"""Exception hierarchy for PneumaFlow."""


class PneumaFlowError(Exception):
    """Base class for all PneumaFlow errors."""


class MalformedRowError(PneumaFlowError):
    """A CSV row could not be parsed (column mismatch or bad timestamp)."""

    def __init__(self, line_number: int, reason: str):
        super().__init__(f"Line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class ColumnarWriteError(PneumaFlowError):
    """Writing or sealing a session's Parquet files failed."""

    def __init__(self, session_id: str, message: str):
        super().__init__(f"Session {session_id}: {message}")
        self.session_id = session_id


class IngestCancelledError(PneumaFlowError):
    """Ingestion was cancelled between rows."""


class QueryError(PneumaFlowError):
    """Base class for read-side failures, tagged with a transport-neutral kind."""

    kind = "internal"


class InvalidParameterError(QueryError):
    """Query parameters were rejected before any scan."""

    kind = "bad_request"


class SessionNotFoundError(QueryError):
    """No columnar files exist for the session id."""

    kind = "not_found"

    def __init__(self, session_id: str):
        super().__init__(f"No columnar data found for session: {session_id}")
        self.session_id = session_id


class SessionNotSealedError(QueryError):
    """The session exists but ingestion has not sealed it yet."""

    kind = "conflict"

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is still being ingested")
        self.session_id = session_id


class QueryInternalError(QueryError):
    """Unexpected failure while scanning columnar data."""

    kind = "internal"
