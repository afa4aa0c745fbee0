class CipherStepperError(Exception):
    pass


class KeyMatrixError(CipherStepperError, ValueError):
    """The Hill key matrix is not a non-empty square matrix of integers."""
    pass


class KeyStreamError(CipherStepperError, ValueError):
    """The key stream has no letters to shift by."""
    pass


class PlaybackClosedError(CipherStepperError, RuntimeError):
    pass
