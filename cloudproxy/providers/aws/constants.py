"""AWS-specific constants for EC2 operations."""

DEFAULT_REGION = "us-east-1"
"""Region used for account-wide calls such as listing regions."""

DEFAULT_INSTANCE_TYPE = "t3.micro"
"""Instance type of proxy instances."""

DEFAULT_SSH_USERNAME = "ubuntu"
"""Login user of the default Ubuntu AMIs."""

UBUNTU_OWNER_ID = "099720109477"
"""Canonical's AWS account, owner of the official Ubuntu AMIs."""

UBUNTU_AMI_NAME_PATTERN = "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*"
"""Name pattern of the Ubuntu 22.04 x86_64 AMIs."""

MANAGED_BY_TAG = "cloudproxy"
"""Value of the ManagedBy tag put on every instance."""
