from enum import Enum


class FarmAssetType(str, Enum):
    """Named farm objects that job records point at."""

    FIELD = "field"
    MACHINE = "machine"
    ATTACHMENT = "attachment"
    TOOL = "tool"
