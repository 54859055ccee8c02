"""CLI entry point for cloudproxy."""

from __future__ import annotations

import logging
import os
import sys

import fire

from cloudproxy.constants import EXIT_CONFIG_ERROR, EXIT_ERROR
from cloudproxy.core.exceptions import (
    AllocationError,
    CloudProxyError,
    ConfigError,
    ProvisionError,
)
from cloudproxy.logging import StreamFormatter, StreamRoutingFilter
from cloudproxy.providers import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    get_credentials_help,
    list_providers,
)

MANUAL_CLEANUP_HINT = "You may need to do some manual clean up!"


def get_cloudproxy_class() -> type:
    """Get CloudProxy class on-demand to avoid circular imports.

    Returns
    -------
    type
        CloudProxy class
    """
    from cloudproxy.__main__ import CloudProxy

    return CloudProxy


def handle_config_error(error: ConfigError, debug_mode: bool) -> None:
    """Handle configuration error.

    Raises
    ------
    ConfigError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Configuration error: {error}", file=sys.stderr)
    sys.exit(EXIT_CONFIG_ERROR)


def handle_credentials_error(error: ProviderCredentialsError, debug_mode: bool) -> None:
    """Handle provider credentials error.

    Parameters
    ----------
    error : ProviderCredentialsError
        The credentials error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderCredentialsError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    if error.provider in list_providers():
        print(get_credentials_help(error.provider), file=sys.stderr)
    else:
        print(f"Cloud credentials error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_api_error(error: ProviderAPIError, debug_mode: bool) -> None:
    """Handle provider API error with context-specific messages.

    Parameters
    ----------
    error : ProviderAPIError
        The API error that was raised
    debug_mode : bool
        Whether debug mode is enabled

    Raises
    ------
    ProviderAPIError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    error_code = error.error_code

    if error_code in ["UnauthorizedOperation", "forbidden"]:
        print("Insufficient permissions\n", file=sys.stderr)
        print("Your cloud credentials cannot create or delete instances.", file=sys.stderr)
        print("Grant at least:", file=sys.stderr)
        print("  - DescribeRegions, DescribeImages, DescribeInstances", file=sys.stderr)
        print("  - RunInstances, CreateTags, TerminateInstances", file=sys.stderr)
    elif error_code in ["InstanceLimitExceeded", "RequestLimitExceeded", "too_many_requests"]:
        print("Cloud quota exceeded\n", file=sys.stderr)
        print("This usually means:", file=sys.stderr)
        print("  - Too many instances running", file=sys.stderr)
        print("  - Need to request quota increase", file=sys.stderr)
        print("  - Try a lower --count", file=sys.stderr)
    elif error_code == "InvalidKeyPair.NotFound":
        print("SSH key pair not found\n", file=sys.stderr)
        print("EC2 key pairs are regional; --key must exist in every", file=sys.stderr)
        print("region used. Restrict regions with --regions.", file=sys.stderr)
    else:
        print(f"Cloud API error: {error}", file=sys.stderr)

    print(MANUAL_CLEANUP_HINT, file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_provision_error(error: ProvisionError, debug_mode: bool) -> None:
    """Handle a failed instance creation.

    Raises
    ------
    ProvisionError
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(str(error), file=sys.stderr)
    print(MANUAL_CLEANUP_HINT, file=sys.stderr)
    sys.exit(EXIT_ERROR)


def handle_cloudproxy_error(error: Exception, debug_mode: bool) -> None:
    """Handle any other expected error.

    Raises
    ------
    Exception
        Re-raised if debug mode is enabled
    """
    if debug_mode:
        raise

    print(f"Error: {error}", file=sys.stderr)
    sys.exit(EXIT_ERROR)


def setup_logging() -> None:
    """Route INFO to stdout and WARNING and above to stderr."""
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(StreamFormatter("%(message)s"))
    stdout_handler.addFilter(StreamRoutingFilter("stdout"))

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(StreamFormatter("%(message)s"))
    stderr_handler.addFilter(StreamRoutingFilter("stderr"))

    logging.basicConfig(
        level=logging.INFO,
        handlers=[stdout_handler, stderr_handler],
    )


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Notes
    -----
    Fire maps the CloudProxy methods to the ``run``, ``regions``,
    ``allocate`` and ``version`` commands. Set ``CLOUDPROXY_DEBUG=1`` to
    get tracebacks instead of the short error messages.
    """
    setup_logging()

    debug_mode = os.environ.get("CLOUDPROXY_DEBUG") == "1"

    try:
        fire.Fire(get_cloudproxy_class()())
    except ConfigError as e:
        handle_config_error(e, debug_mode)
    except ProvisionError as e:
        handle_provision_error(e, debug_mode)
    except ProviderCredentialsError as e:
        handle_credentials_error(e, debug_mode)
    except ProviderAPIError as e:
        handle_api_error(e, debug_mode)
    except (AllocationError, ProviderConnectionError, CloudProxyError) as e:
        handle_cloudproxy_error(e, debug_mode)
    except KeyboardInterrupt:
        if debug_mode:
            raise
        print(f"\nInterrupted. {MANUAL_CLEANUP_HINT}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
