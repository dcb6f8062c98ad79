"""Error taxonomy shared by the period resolver, the repository and the API.

- InvalidInput: malformed or semantically inconsistent request (400).
- NotFound: lookup/delete target absent (404). Listings never raise it.
- PeriodConflict: a period window could not be created or read back after
  one retry (500). Normally recovered inside the resolver.
- StoreUnavailable: the database could not be reached (500, client retries).
"""


class LeagueError(Exception):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(LeagueError):
    status_code = 400


class NotFound(LeagueError):
    status_code = 404


class PeriodConflict(LeagueError):
    status_code = 500


class StoreUnavailable(LeagueError):
    status_code = 500
