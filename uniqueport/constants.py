from enum import StrEnum
from pathlib import Path

UNIQUEPORT_DIR = Path(__file__).parent
REPO_ROOT_DIR = UNIQUEPORT_DIR.parent

# Attribute names of a set item in the ports table
SET_ITEM_KEY_ATTR = "Key"
SET_ITEM_MEMBERS_ATTR = "Members"

# Attribute names of a row in the lock table
LOCK_NAME_ATTR = "Name"
LOCK_TOKEN_ATTR = "Token"
LOCK_EXPIRES_ATTR = "Expires"

UNIQUE_PORT_RESOURCE_TYPE = "Custom::UniquePort"
PORT_OUTPUT_NAME = "Port"


class StoreBackend(StrEnum):
    DYNAMODB = "dynamodb"
    LOCAL = "local"


class LockBackend(StrEnum):
    DYNAMODB = "dynamodb"
    REDIS = "redis"
    LOCAL = "local"


class ProvisioningRequestType(StrEnum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class ProvisioningStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
