"""EC2 instance management for cloudproxy."""

import logging
from typing import Any

import boto3

from cloudproxy.core.interfaces import InstanceInfo
from cloudproxy.providers.aws.ami import AMIResolver
from cloudproxy.providers.aws.constants import (
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_REGION,
    DEFAULT_SSH_USERNAME,
    MANAGED_BY_TAG,
)
from cloudproxy.providers.aws.errors import handle_aws_errors
from cloudproxy.utils import generate_instance_names

logger = logging.getLogger(__name__)


class EC2Provider:
    """Create, inspect and terminate proxy instances on EC2.

    Parameters
    ----------
    instance_type : str | None
        EC2 instance type (default: t3.micro)
    image_id : str | None
        AMI used in every region. If None, the newest Ubuntu 22.04 AMI of
        each region is used
    boto3_client_factory : Callable[..., Any] | None
        Optional factory for creating boto3 clients. If None, uses boto3.client
    """

    name = "aws"
    default_ssh_username = DEFAULT_SSH_USERNAME

    def __init__(
        self,
        instance_type: str | None = None,
        image_id: str | None = None,
        boto3_client_factory: Any | None = None,
    ) -> None:
        self.instance_type = instance_type or DEFAULT_INSTANCE_TYPE
        self.image_id = image_id
        self.boto3_client_factory = boto3_client_factory or boto3.client
        self._clients: dict[str, Any] = {}
        self._amis: dict[str, str] = {}

    def _client(self, region: str) -> Any:
        if region not in self._clients:
            self._clients[region] = self.boto3_client_factory("ec2", region_name=region)
        return self._clients[region]

    def _resolve_ami(self, region: str) -> str:
        if self.image_id:
            return self.image_id

        if region not in self._amis:
            self._amis[region] = AMIResolver(self._client(region), region).find_ami_by_query()
        return self._amis[region]

    def list_regions(self) -> list[str]:
        """List regions enabled for the account.

        Returns
        -------
        list[str]
            Region names in the order returned by AWS
        """
        with handle_aws_errors():
            response = self._client(DEFAULT_REGION).describe_regions()
        return [region["RegionName"] for region in response["Regions"]]

    def create_instances(
        self, name_prefix: str, region: str, key_id: str, count: int
    ) -> list[InstanceInfo]:
        """Launch ``count`` instances in ``region`` with a single request.

        Parameters
        ----------
        name_prefix : str
            Prefix of the generated Name tags
        region : str
            Target region
        key_id : str
            Name of an EC2 key pair existing in ``region``
        count : int
            Number of instances

        Returns
        -------
        list[InstanceInfo]
            Launched instances in launch order

        Notes
        -----
        Does not wait for the instances to start running.
        """
        ami_id = self._resolve_ami(region)
        client = self._client(region)

        with handle_aws_errors():
            response = client.run_instances(
                ImageId=ami_id,
                InstanceType=self.instance_type,
                KeyName=key_id,
                MinCount=count,
                MaxCount=count,
                TagSpecifications=[
                    {
                        "ResourceType": "instance",
                        "Tags": [
                            {"Key": "ManagedBy", "Value": MANAGED_BY_TAG},
                            {"Key": "NamePrefix", "Value": name_prefix},
                        ],
                    }
                ],
            )

        instance_ids = [instance["InstanceId"] for instance in response["Instances"]]
        names = generate_instance_names(name_prefix, len(instance_ids))

        for instance_id, name in zip(instance_ids, names):
            with handle_aws_errors():
                client.create_tags(
                    Resources=[instance_id], Tags=[{"Key": "Name", "Value": name}]
                )

        logger.debug("Launched %s in %s", ", ".join(instance_ids), region)
        return [
            InstanceInfo(instance_id=instance_id, name=name, region=region)
            for instance_id, name in zip(instance_ids, names)
        ]

    def get_address(self, instance_id: str, region: str) -> str:
        """Return the public IPv4 address of an instance.

        Returns
        -------
        str
            Public IP address, or an empty string if none is assigned yet
        """
        with handle_aws_errors():
            response = self._client(region).describe_instances(InstanceIds=[instance_id])

        reservations = response.get("Reservations") or [{}]
        instances = reservations[0].get("Instances") or [{}]
        return instances[0].get("PublicIpAddress") or ""

    def delete_instance(self, instance_id: str, region: str) -> None:
        """Request termination of an instance without waiting for it."""
        with handle_aws_errors():
            self._client(region).terminate_instances(InstanceIds=[instance_id])


def get_aws_credentials_error_message() -> str:
    """Get standard AWS credentials error message."""
    return (
        "AWS credentials missing or rejected\n\n"
        "Run `aws configure`, or export AWS_ACCESS_KEY_ID and\n"
        "AWS_SECRET_ACCESS_KEY (plus AWS_SESSION_TOKEN for temporary\n"
        "credentials) before starting cloudproxy."
    )
