class CompressionError(Exception):
    pass


class ReadError(CompressionError):
    pass


class DecodeError(CompressionError):
    pass


class EncodeError(CompressionError):
    pass


class ConfigError(CompressionError, ValueError):
    pass
