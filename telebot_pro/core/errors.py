class TeleBotError(Exception):
    """Base class for errors reported back to the operator."""


class JobValidationError(TeleBotError):
    pass


class JobNotFoundError(TeleBotError):
    pass


class JobStateError(TeleBotError):
    pass


class AuthenticationError(TeleBotError):
    pass


class SessionError(TeleBotError):
    pass


class SessionNotFoundError(SessionError):
    pass


class BotError(TeleBotError):
    pass


class BotNotFoundError(BotError):
    pass
