"""Error taxonomy for the CI pipeline.

Every stage either returns normally or raises one of the exceptions below.
Adapters translate SDK and HTTP failures into RemoteError; the stage runner
re-raises those as the failing stage's own error type.
"""


class ApexCIError(RuntimeError):
    """Base class for all pipeline errors."""


class RemoteError(ApexCIError):
    """Raised by adapters when a remote API call fails."""


class AuthError(ApexCIError):
    """Raised when Salesforce authentication fails."""


class DeployError(ApexCIError):
    """Raised when a metadata deployment does not succeed."""


class CatalogError(ApexCIError):
    """Raised when the class catalog cannot be built."""


class TestSubmissionError(ApexCIError):
    """Raised when the asynchronous test run cannot be submitted."""

    __test__ = False


class PollingError(ApexCIError):
    """Raised when querying test queue items or results fails."""


class PollTimeoutError(PollingError):
    """Raised when a polling loop exceeds its deadline."""


class TestFailureError(ApexCIError):
    """Raised when at least one test method failed."""

    __test__ = False


class CoverageError(ApexCIError):
    """Raised when code coverage cannot be fetched."""


class UploadError(ApexCIError):
    """Raised when Coveralls rejects or fails the upload."""
