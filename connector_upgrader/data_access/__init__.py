"""
Data Access Layer
"""

from .instance_layout import InstanceLayout
from .interfaces import (
    PackageManager,
    PackageRecordStore,
    ProviderConfigStore,
    UploadGateway,
    UserDirectory,
)
from .local_instance import LocalInstance
from .rest_gateway import RestUploadGateway

__all__ = [
    "InstanceLayout",
    "LocalInstance",
    "PackageManager",
    "PackageRecordStore",
    "ProviderConfigStore",
    "RestUploadGateway",
    "UploadGateway",
    "UserDirectory",
]
