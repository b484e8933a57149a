from .db import (
    get_session,
    create_all,
    dispose_engine,
    insert_scheduler,
    get_scheduler,
    fetch_due_schedulers,
    claim_scheduler,
    mark_scheduler_sent,
    release_scheduler,
    create_conversation,
    find_shared_conversation,
    create_message,
    touch_conversation,
    get_conversation,
    list_messages,
)  # noqa: F401
