"""Orchestration client for the remote automation-agent API.

MODULES:
    - bootstrap: settings, logging, metrics and the shared application context
    - transport: HTTP transport carrying the shared-secret header
    - dialects: probe-then-cache primitive shared by the three stages
    - launcher / poller / normalizer: the three stages of one flow
    - client: PhantomClient tying the stages together
    - errors: failure taxonomy surfaced to the front door

USAGE:
    from phantom import PhantomClient, LaunchFailure, JobFailed
"""

from .client import PhantomClient  # noqa: F401
from .errors import (  # noqa: F401
    PhantomError,
    ConfigurationError,
    LaunchFailure,
    JobFailed,
    PollTimeout,
)
from .poller import PollPolicy  # noqa: F401
