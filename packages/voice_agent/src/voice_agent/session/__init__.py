from voice_agent.session.controller import SessionController
from voice_agent.session.pipeline import ConversationPipeline, trim_history
from voice_agent.session.state import (
    Narrator,
    QuestionPredicate,
    SessionState,
    SpeechRecognizer,
    is_question,
)

__all__ = [
    "ConversationPipeline",
    "Narrator",
    "QuestionPredicate",
    "SessionController",
    "SessionState",
    "SpeechRecognizer",
    "is_question",
    "trim_history",
]
