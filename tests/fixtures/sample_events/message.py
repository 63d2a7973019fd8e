from capaudit.annotations import declare

from .base import Event
from .capabilities import GatewayIntent


class GenericMessageEvent(Event):
    """Indicates that a message event was fired in a guild or private channel.

    Requirements:

    {@link GatewayIntent#GUILD_MESSAGES GUILD_MESSAGES} to work in guilds
    {@link GatewayIntent#DIRECT_MESSAGES DIRECT_MESSAGES} to work in private channels
    """


@declare("GatewayIntent", always=[GatewayIntent.MESSAGE_CONTENT])
class MessageReceivedEvent(GenericMessageEvent):
    """Indicates that a message was received.

    Requirements:

    {@link GatewayIntent#GUILD_MESSAGES GUILD_MESSAGES} to work in guilds
    {@link GatewayIntent#DIRECT_MESSAGES DIRECT_MESSAGES} to work in private channels
    {@link GatewayIntent#MESSAGE_CONTENT MESSAGE_CONTENT} to read message content
    """


class GenericMessageReactionEvent(GenericMessageEvent):
    """Indicates that a reaction was added to or removed from a message.

    Requirements:

    {@link GatewayIntent#GUILD_MESSAGE_REACTIONS GUILD_MESSAGE_REACTIONS} to work in guilds
    {@link GatewayIntent#DIRECT_MESSAGE_REACTIONS DIRECT_MESSAGE_REACTIONS} to work in private channels
    """


class MessageReactionAddEvent(GenericMessageReactionEvent):
    """Indicates that a reaction was added to a message.

    Requirements:

    {@link GatewayIntent#GUILD_MESSAGE_REACTIONS GUILD_MESSAGE_REACTIONS} to work in guilds
    {@link GatewayIntent#DIRECT_MESSAGE_REACTIONS DIRECT_MESSAGE_REACTIONS} to work in private channels
    """
