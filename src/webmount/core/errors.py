class WebmountError(Exception):
    """Base class for errors raised by the composition layer itself."""


class InvalidArgument(WebmountError, ValueError):
    """
    A registration call was made with arguments that can never be mounted.

    Raised synchronously at registration time. These are configuration bugs,
    so they are not routed through the response pipeline.
    """


class ServerStateError(WebmountError, RuntimeError):
    """start() on a listening server or stop() on one that is not listening."""
