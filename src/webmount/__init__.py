from webmount.core.errors import InvalidArgument, ServerStateError, WebmountError
from webmount.core.failures import classify, fail
from webmount.core.status import PrometheusStatusObserver, StatusObserver
from webmount.webserver import WebServer

__all__ = [
    "InvalidArgument",
    "PrometheusStatusObserver",
    "ServerStateError",
    "StatusObserver",
    "WebServer",
    "WebmountError",
    "classify",
    "fail",
]
