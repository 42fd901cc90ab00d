"""
Exception hierarchy for the forwarding pipeline.

Policy rejections (spam/virus/blacklist) are not errors and never raise.
Everything here ends the invocation with a failure so the Lambda runtime's
own retry policy applies.
"""


class ForwarderError(Exception):
    """Base class for all forwarder errors."""
    pass


class ConfigurationError(ForwarderError):
    """Raised when required configuration is missing or invalid."""
    pass


class MalformedInputError(ForwarderError):
    """Raised when the notification or raw email cannot be used as-is."""
    pass


class ParseError(MalformedInputError):
    """Raised when the raw email's MIME structure cannot be parsed."""
    pass


class UpstreamError(ForwarderError):
    """Raised when SES or S3 returns an error."""
    pass
