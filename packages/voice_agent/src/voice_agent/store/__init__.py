from voice_agent.store.hints import HintStore
from voice_agent.store.history import ConversationStore
from voice_agent.store.messages import StoredMessage
from voice_agent.store.pending import PendingQueue
from voice_agent.store.rules import (
    NotificationRule,
    RulesStore,
    rules_for_source,
    subscribed_sources,
)

__all__ = [
    "ConversationStore",
    "HintStore",
    "NotificationRule",
    "PendingQueue",
    "RulesStore",
    "StoredMessage",
    "rules_for_source",
    "subscribed_sources",
]
