"""
AWS Signature Version 4 signed HTTP requests for API Gateway.

This package signs requests for the execute-api service without botocore and
sends them through httpx, decoding responses as text or JSON.
"""

from .client import (
    AsyncClient,
    Client,
    Decoder,
    RawText,
    RequestConfig,
    SigningFailurePolicy,
    StructuredJSON,
)
from .errors import (
    ApiRequestError,
    InvalidHeaderError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    SigningError,
)
from .sigv4 import Credentials, Headers, Method, Request, SigningDetails, SigV4Signer

__version__ = "0.1.0"
__all__ = [
    "ApiRequestError",
    "AsyncClient",
    "Client",
    "Credentials",
    "Decoder",
    "Headers",
    "InvalidHeaderError",
    "InvalidResponseError",
    "InvalidURLError",
    "Method",
    "NetworkError",
    "RawText",
    "Request",
    "RequestConfig",
    "SigV4Signer",
    "SigningDetails",
    "SigningError",
    "SigningFailurePolicy",
    "StructuredJSON",
]
