"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class PolicyLoadError(DomainException):
    """Lending policy file is missing, unreadable or does not match the schema"""

    pass


class InferenceError(DomainException):
    """The external vision-to-text engine failed to answer"""

    pass


class ExtractionSequenceError(DomainException):
    """The inference engine was called while another call was still in flight"""

    pass
