from enum import Enum


class UserAccountType(str, Enum):
    OWNER = "owner"
    SUPER_ADMIN = "super_admin"
