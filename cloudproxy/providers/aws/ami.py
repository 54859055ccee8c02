"""AMI lookup for proxy instances."""

import logging
from typing import Any

from cloudproxy.providers.aws.constants import UBUNTU_AMI_NAME_PATTERN, UBUNTU_OWNER_ID
from cloudproxy.providers.aws.errors import handle_aws_errors
from cloudproxy.providers.exceptions import ProviderAPIError

logger = logging.getLogger(__name__)


class AMIResolver:
    """Resolve the newest matching AMI in one region.

    Parameters
    ----------
    ec2_client : Any
        Boto3 EC2 client of the region
    region : str
        AWS region name
    """

    def __init__(self, ec2_client: Any, region: str) -> None:
        self.ec2_client = ec2_client
        self.region = region

    def find_ami_by_query(
        self,
        name_pattern: str = UBUNTU_AMI_NAME_PATTERN,
        owner: str | None = UBUNTU_OWNER_ID,
    ) -> str:
        """Query AWS for AMI matching pattern and return newest by CreationDate.

        Parameters
        ----------
        name_pattern : str
            AMI name pattern (supports * and ? wildcards)
        owner : str | None
            AWS account ID or alias (e.g., "099720109477", "amazon")

        Returns
        -------
        str
            Image ID of the newest matching AMI

        Raises
        ------
        ProviderAPIError
            If no AMI matches the filters
        """
        filters = [
            {"Name": "name", "Values": [name_pattern]},
            {"Name": "state", "Values": ["available"]},
        ]

        kwargs: dict[str, Any] = {"Filters": filters}
        if owner:
            kwargs["Owners"] = [owner]

        with handle_aws_errors():
            response = self.ec2_client.describe_images(**kwargs)

        if not response["Images"]:
            owner_msg = f"owner={owner}, " if owner else ""
            raise ProviderAPIError(
                f"No AMI found in {self.region} for {owner_msg}name={name_pattern}",
                error_code="InvalidAMIID.NotFound",
            )

        images = sorted(
            response["Images"],
            key=lambda x: x["CreationDate"],
            reverse=True,
        )

        logger.debug("Resolved AMI %s in %s", images[0]["ImageId"], self.region)
        return images[0]["ImageId"]
