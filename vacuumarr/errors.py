class VacuumError(Exception):
    """Base error for vacuumarr"""


class ConfigurationError(VacuumError):
    """Required configuration is missing or malformed"""


class TautulliError(VacuumError):
    """Tautulli request failed or returned an error response"""

    def __init__(self, message, cmd=None, status_code=None):
        super().__init__(message)
        self.cmd = cmd
        self.status_code = status_code
