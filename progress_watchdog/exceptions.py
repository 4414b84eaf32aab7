"""Error types that end the watchdog process."""


class WatchdogFatalError(Exception):
    """Base for errors that mean the control-plane link is broken.

    The top-level runner turns these into a logged shutdown with a
    non-zero exit status.
    """


class FleetDirectoryError(WatchdogFatalError):
    """Raised when listing or patching fleet members fails."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Fleet directory {operation} failed: {detail}")


class PersistError(WatchdogFatalError):
    """Raised when a continue code could not be written to its annotation."""

    def __init__(self, team_name: str, detail: str) -> None:
        self.team_name = team_name
        self.detail = detail
        super().__init__(f"Could not persist continue code for team '{team_name}': {detail}")
