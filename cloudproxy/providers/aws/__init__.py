"""Amazon EC2 instance provider."""

from cloudproxy.providers.aws.compute import EC2Provider

__all__ = ["EC2Provider"]
