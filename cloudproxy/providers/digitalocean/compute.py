"""DigitalOcean droplet management for cloudproxy."""

from __future__ import annotations

import logging
from typing import Any

import requests

from cloudproxy.core.interfaces import InstanceInfo
from cloudproxy.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
)
from cloudproxy.utils import generate_instance_names

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.digitalocean.com/v2"
REQUEST_TIMEOUT_SECONDS = 10
DEFAULT_SIZE = "s-1vcpu-1gb"
DEFAULT_IMAGE = "ubuntu-22-04-x64"
DEFAULT_SSH_USERNAME = "root"
DROPLET_TAG = "cloudproxy"


class DigitalOceanProvider:
    """Create, inspect and delete proxy droplets through the DigitalOcean API.

    Parameters
    ----------
    token : str
        DigitalOcean API token
    size : str | None
        Droplet size slug (default: s-1vcpu-1gb)
    image : str | None
        Droplet image slug (default: ubuntu-22-04-x64)
    session : requests.Session | None
        Optional HTTP session, mainly for testing
    """

    name = "digitalocean"
    default_ssh_username = DEFAULT_SSH_USERNAME

    def __init__(
        self,
        token: str,
        size: str | None = None,
        image: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.size = size or DEFAULT_SIZE
        self.image = image or DEFAULT_IMAGE
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send one API request and translate failures into provider errors.

        Raises
        ------
        ProviderCredentialsError
            If the token is rejected (HTTP 401)
        ProviderConnectionError
            If the request fails in transit
        ProviderAPIError
            For any other error response, or a body that is not JSON
        """
        url = f"{API_BASE_URL}{path}"

        try:
            response = self.session.request(
                method, url, timeout=REQUEST_TIMEOUT_SECONDS, **kwargs
            )
        except requests.RequestException as e:
            raise ProviderConnectionError(f"Could not reach DigitalOcean API: {e}") from e

        if response.status_code == 401:
            raise ProviderCredentialsError(
                "DigitalOcean rejected the API token", provider="digitalocean"
            )

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("message") or response.text or response.reason
            raise ProviderAPIError(
                f"DigitalOcean API error ({response.status_code}): {message}",
                error_code=body.get("id") or str(response.status_code),
            )

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ProviderAPIError(
                f"DigitalOcean API returned an unreadable response: {e}",
                error_code="invalid_response",
            ) from e

    def list_regions(self) -> list[str]:
        """List available region slugs in API order."""
        body = self._request("GET", "/regions", params={"per_page": 200})
        return [
            region["slug"]
            for region in body.get("regions", [])
            if region.get("available", True)
        ]

    def create_instances(
        self, name_prefix: str, region: str, key_id: str, count: int
    ) -> list[InstanceInfo]:
        """Create ``count`` droplets in ``region`` with a single request.

        Parameters
        ----------
        name_prefix : str
            Prefix of the generated droplet names
        region : str
            Region slug
        key_id : str
            SSH key fingerprint or ID registered with DigitalOcean
        count : int
            Number of droplets

        Returns
        -------
        list[InstanceInfo]
            Created droplets in response order
        """
        payload = {
            "names": generate_instance_names(name_prefix, count),
            "region": region,
            "size": self.size,
            "image": self.image,
            "ssh_keys": [key_id],
            "backups": False,
            "ipv6": False,
            "tags": [DROPLET_TAG],
        }

        body = self._request("POST", "/droplets", json=payload)

        return [
            InstanceInfo(instance_id=str(droplet["id"]), name=droplet["name"], region=region)
            for droplet in body.get("droplets", [])
        ]

    def get_address(self, instance_id: str, region: str) -> str:
        """Return the public IPv4 address of a droplet, or an empty string."""
        body = self._request("GET", f"/droplets/{instance_id}")
        networks = body.get("droplet", {}).get("networks", {}).get("v4", [])

        for network in networks:
            if network.get("type") == "public" and network.get("ip_address"):
                return network["ip_address"]

        return ""

    def delete_instance(self, instance_id: str, region: str) -> None:
        """Delete a droplet."""
        self._request("DELETE", f"/droplets/{instance_id}")


def get_digitalocean_credentials_error_message() -> str:
    """Get standard DigitalOcean credentials error message."""
    return (
        "DigitalOcean API token missing or rejected\n\n"
        "Create a token at https://cloud.digitalocean.com/account/api/tokens\n"
        "and pass it with --token or set:\n"
        "  export DIGITALOCEAN_TOKEN=..."
    )
