"""
Factory for the durable storage tier.

Turns a DurableStorageConfig into a ready-to-use tier, choosing the S3
endpoint for each provider.
"""

import logging
from typing import Optional

import boto3

from shared.config import DurableStorageConfig
from shared.constants import (
    AWS_S3_ENDPOINT_TEMPLATE,
    BACKBLAZE_B2_ENDPOINT_TEMPLATE,
    CLOUDFLARE_R2_ENDPOINT_TEMPLATE,
)
from shared.errors import ConfigurationError
from shared.models import StorageProvider
from .object_store import S3ObjectStoreTier, DirectoryObjectStoreTier
from .storage_provider import DurableTier

logger = logging.getLogger(__name__)


class StorageTierFactory:
    """Factory for creating durable tier instances."""

    @staticmethod
    def create(config: Optional[DurableStorageConfig], client_factory=None) -> Optional[DurableTier]:
        """
        Create the durable tier described by config.

        Args:
            config: Durable storage settings, or None when disabled
            client_factory: Callable building the S3 client (defaults to boto3.client)

        Returns:
            A DurableTier, or None if no durable storage is configured

        Raises:
            ConfigurationError: If required settings are missing
        """
        if config is None:
            return None

        if config.provider == StorageProvider.LOCAL:
            if not config.endpoint:
                raise ConfigurationError("DURABLE_STORAGE_ENDPOINT must name a directory for the local provider")
            return DirectoryObjectStoreTier(config.endpoint, config.prefix)

        if not config.bucket:
            raise ConfigurationError("DURABLE_STORAGE_BUCKET is required")
        if not (config.access_key_id and config.secret_access_key):
            raise ConfigurationError("Durable storage credentials are missing")

        endpoint_url, region = StorageTierFactory._endpoint_for(config)
        client_factory = client_factory or boto3.client
        s3_client = client_factory(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=region,
        )
        logger.info(f"[ObjectStorage] Using {StorageTierFactory.get_provider_name(config.provider)} bucket {config.bucket}")
        return S3ObjectStoreTier(s3_client, config.bucket, config.prefix, name=config.provider.value)

    @staticmethod
    def _endpoint_for(config: DurableStorageConfig):
        if config.provider == StorageProvider.CLOUDFLARE_R2:
            if config.endpoint:
                return config.endpoint, 'auto'
            if not config.account_id:
                raise ConfigurationError("R2_ACCOUNT_ID is required for Cloudflare R2")
            # R2 uses 'auto' region
            return CLOUDFLARE_R2_ENDPOINT_TEMPLATE.format(account_id=config.account_id), 'auto'

        elif config.provider == StorageProvider.BACKBLAZE_B2:
            if config.endpoint:
                return config.endpoint, config.region
            if not config.region:
                raise ConfigurationError("DURABLE_STORAGE_REGION is required for Backblaze B2")
            return BACKBLAZE_B2_ENDPOINT_TEMPLATE.format(region=config.region), config.region

        elif config.provider == StorageProvider.AWS_S3:
            region = config.region or 'us-east-1'
            return config.endpoint or AWS_S3_ENDPOINT_TEMPLATE.format(region=region), region

        elif config.provider == StorageProvider.GENERIC_S3:
            if not config.endpoint:
                raise ConfigurationError("DURABLE_STORAGE_ENDPOINT is required for generic S3 storage")
            return config.endpoint, config.region

        else:
            raise ConfigurationError(f"Unknown provider type: {config.provider}")

    @staticmethod
    def get_provider_name(provider_type: StorageProvider) -> str:
        """Get human-readable provider name."""
        names = {
            StorageProvider.CLOUDFLARE_R2: "Cloudflare R2",
            StorageProvider.BACKBLAZE_B2: "Backblaze B2",
            StorageProvider.AWS_S3: "Amazon S3",
            StorageProvider.GENERIC_S3: "Generic S3-Compatible",
            StorageProvider.LOCAL: "Local Directory",
        }
        return names.get(provider_type, "Unknown")
