"""
Event Type Constants

Centralized definitions for all event types used on the assistant's event bus.
"""

# User interaction events
USER_MESSAGE_SENT = "USER_MESSAGE_SENT"

# Conversation events
ASSISTANT_MESSAGE = "ASSISTANT_MESSAGE"
"""
Dispatched when the language model's reply is received.

Payload:
    content (str): Assistant text, verbatim
    usage (dict, optional): Provider-reported token usage
"""

SYSTEM_MESSAGE = "SYSTEM_MESSAGE"
"""
Dispatched for every status line produced while handling a turn.

Payload:
    category (str): Display category ('SYSTEM', 'SUCCESS', 'WARNING', 'ERROR')
    message (str): Text shown to the operator
"""

CONVERSATION_CLEARED = "CONVERSATION_CLEARED"

# Action dispatch events
ACTION_DISPATCHED = "ACTION_DISPATCHED"
"""
Dispatched after an authorized action is handed to the bridge.

Payload:
    action (str): Action name
    params (dict): Parameters sent to the host
"""

ACTION_COMPLETED = "ACTION_COMPLETED"
"""
Dispatched when the bridge returns a result for an action.

Payload:
    action (str): Action name
    success (bool): Whether the host reported success
    result (dict): Full decoded result envelope
"""

ACTION_BLOCKED = "ACTION_BLOCKED"
"""
Dispatched when an extracted action name is not in the catalog.

Payload:
    action (str): Rejected action name
    error (str): 'Invalid action: <name>'
"""

TURN_COMPLETED = "TURN_COMPLETED"
"""
Dispatched once a user turn has been fully handled.

Payload:
    outcome (dict): Serialized TurnOutcome
"""

# Host state events
PROJECT_SNAPSHOT_UPDATED = "PROJECT_SNAPSHOT_UPDATED"
"""
Dispatched whenever the read-only project snapshot is replaced.

Payload:
    snapshot (dict|None): Serialized ProjectSnapshot, or None when no composition is active
    label (str): Badge text ('name · width×height' or 'No Comp')
"""

# Connectivity events
CONNECTION_STATUS_CHANGED = "CONNECTION_STATUS_CHANGED"
"""
Payload:
    status (str): 'testing', 'online' or 'offline'
    error (str, optional): Failure reason when offline
"""

RELOAD_ENDPOINT_CONFIG = "RELOAD_ENDPOINT_CONFIG"

# Service health events
LLM_SERVICE_WARNING = "LLM_SERVICE_WARNING"
LLM_SERVICE_ERROR = "LLM_SERVICE_ERROR"
