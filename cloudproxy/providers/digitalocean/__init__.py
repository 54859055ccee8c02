"""DigitalOcean droplet provider."""

from cloudproxy.providers.digitalocean.compute import DigitalOceanProvider

__all__ = ["DigitalOceanProvider"]
