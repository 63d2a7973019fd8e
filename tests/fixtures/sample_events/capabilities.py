"""Capability enums of the sample library and their derivation functions."""

from enum import Enum

from capaudit.annotations import always_required


class GatewayIntent(Enum):
    GUILDS = 1
    GUILD_MEMBERS = 2
    GUILD_MODERATION = 3
    GUILD_MESSAGES = 4
    GUILD_MESSAGE_REACTIONS = 5
    DIRECT_MESSAGES = 6
    DIRECT_MESSAGE_REACTIONS = 7
    MESSAGE_CONTENT = 8

    @classmethod
    def from_events(cls, event_type):
        return {cls[name] for name in always_required(event_type, "GatewayIntent")}


class CacheFlag(Enum):
    MEMBER_OVERRIDES = "member_overrides"
    ACTIVITY = "activity"
    ONLINE_STATUS = "online_status"

    @classmethod
    def from_events(cls, event_type):
        return {cls[name] for name in always_required(event_type, "CacheFlag")}


class Permission(Enum):
    BAN_MEMBERS = 1 << 2
    VIEW_AUDIT_LOGS = 1 << 7
    MANAGE_ROLES = 1 << 28

    @classmethod
    def from_events(cls, event_type):
        return {cls[name] for name in always_required(event_type, "Permission")}
