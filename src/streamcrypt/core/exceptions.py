"""
Exceptions for the streamcrypt engine
Every error raised by the package derives from StreamCryptError so callers have one catch-all
"""


class StreamCryptError(Exception):
    # general container for errors
    pass


class StateError(StreamCryptError, RuntimeError):
    # raised when an operation is used out of order (absorb after finalize, finalize twice, reused driver)
    pass


class InvalidKeyError(StreamCryptError, ValueError):
    # raised on a malformed or wrong-length key, IV, salt or password
    pass


class ProviderError(StreamCryptError):
    # raised when the underlying primitive rejects its input or fails internally
    # the original exception is kept as __cause__
    pass


class StreamIOError(StreamCryptError, OSError):
    # raised when a source read or sink write fails
    pass


class EnvelopeError(StreamCryptError, ValueError):
    # raised when serialized result bytes cannot be parsed
    pass


class UnsupportedAlgorithmError(StreamCryptError, LookupError):
    # raised when an algorithm name or id is not registered
    pass
