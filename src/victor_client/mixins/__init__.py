"""Resource mixins composed into VictorClient."""

from victor_client.mixins.auth import AuthMixin
from victor_client.mixins.chats import ChatMixin
from victor_client.mixins.notifications import NotificationMixin
from victor_client.mixins.offers import OfferMixin
from victor_client.mixins.tasks import TaskMixin

__all__ = ["AuthMixin", "ChatMixin", "NotificationMixin", "OfferMixin", "TaskMixin"]
