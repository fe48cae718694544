from app.services.conversation_service import (
    create_new_conversation,
    get_or_create_conversation,
    update_conversation_mode,
)
from app.services.message_service import (
    clear_conversation_messages,
    clear_user_conversations,
    get_conversation_messages,
    save_message,
)
from app.services.state_machine import (
    ConversationMode,
    UnknownModeError,
    mode_for_postback,
    mode_for_trigger,
    parse_mode,
)
