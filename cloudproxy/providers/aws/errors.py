"""Translation of boto3/botocore errors into provider exceptions."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from cloudproxy.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)

CREDENTIALS_ERROR_CODES = frozenset(
    ("AuthFailure", "InvalidClientTokenId", "UnrecognizedClientException", "ExpiredToken")
)


@contextmanager
def handle_aws_errors() -> Iterator[None]:
    """Re-raise botocore errors as provider exceptions.

    Raises
    ------
    ProviderCredentialsError
        If credentials are missing or rejected
    ProviderConnectionError
        If the EC2 endpoint cannot be reached or the request fails in transit
    ProviderAPIError
        For any other API error, with the AWS error code attached
    """
    try:
        yield
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ProviderCredentialsError(str(e), provider="aws") from e
    except EndpointConnectionError as e:
        raise ProviderConnectionError(str(e)) from e
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code")
        if error_code in CREDENTIALS_ERROR_CODES:
            raise ProviderCredentialsError(str(e), provider="aws") from e
        raise ProviderAPIError(str(e), error_code=error_code) from e
    except BotoCoreError as e:
        raise ProviderConnectionError(str(e)) from e
