import logging

logger = logging.getLogger(__name__)


class HandRomException(Exception):
    code = 'HANDROM_ERROR'

    def __init__(self, message: str = None, code: str = None):
        if code:
            self.code = code
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class InvalidStateTransition(HandRomException):
    """Raised only when the tracker runs in strict mode."""
    code = 'INVALID_STATE_TRANSITION'


class MalformedFrameError(HandRomException, ValueError):
    code = 'MALFORMED_FRAME'


class ScoringInputError(HandRomException, ValueError):
    code = 'SCORING_INPUT_ERROR'


def exception_to_exit_code(exc: HandRomException) -> int:
    """Map a library error to a CLI exit status."""
    logger.error(f"{exc.code}: {exc.message}")
    if isinstance(exc, (MalformedFrameError, ScoringInputError)):
        return 2
    return 1
