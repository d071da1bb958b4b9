"""Shared constants for ContractLoom.

This module contains constants that are used across multiple modules
to avoid duplication and ensure consistency.
"""

# =============================================================================
# File Roles
# =============================================================================

ROLE_PRIVILEGED = "privileged-process"
ROLE_BRIDGE = "bridge"
ROLE_UI_SCRIPT = "ui-script"
ROLE_MARKUP = "markup"

ALL_ROLES = (ROLE_PRIVILEGED, ROLE_BRIDGE, ROLE_UI_SCRIPT, ROLE_MARKUP)

# Names the upstream design stage uses for file roles in producer/consumer lists
ROLE_ALIASES = {
    ROLE_PRIVILEGED: frozenset({"main", "main-process", "privileged", "privileged-process", "backend"}),
    ROLE_BRIDGE: frozenset({"bridge", "preload"}),
    ROLE_UI_SCRIPT: frozenset({"renderer", "ui-script", "ui", "script", "frontend"}),
    ROLE_MARKUP: frozenset({"markup", "html"}),
}

# =============================================================================
# Contract Origins / Channel Kinds
# =============================================================================

ORIGIN_SPEC = "spec"
ORIGIN_INFERRED = "inferred"

# Renderer -> main request channels (ipcMain.handle / ipcRenderer.invoke)
CHANNEL_INVOKE = "invoke"
# Main -> renderer pushes (webContents.send / ipcRenderer.on)
CHANNEL_EVENT = "event"

SIDE_PRODUCER = "producer"
SIDE_CONSUMER = "consumer"

# =============================================================================
# Mention Kinds
# =============================================================================

MENTION_CHANNEL = "channel"
MENTION_BRIDGE_METHOD = "bridge-method"
MENTION_API_CALL = "api-call"
MENTION_SELECTOR = "selector"
MENTION_ELEMENT = "element"
MENTION_CLASS = "class"
MENTION_DYNAMIC_ELEMENT = "dynamic-element"
MENTION_SELECT_OPTION = "select-option"
MENTION_STORAGE = "storage"

# =============================================================================
# Severities
# =============================================================================

SEVERITY_CRITICAL = "critical"
SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_WARNING = "warning"

SEVERITY_ORDER = {
    SEVERITY_CRITICAL: 0,
    SEVERITY_HIGH: 1,
    SEVERITY_MEDIUM: 2,
    SEVERITY_WARNING: 3,
}

# =============================================================================
# Repair Policies
# =============================================================================

DOM_POLICY_MARKUP_FOLLOWS_SCRIPT = "markup-follows-script"
DOM_POLICY_SCRIPT_FOLLOWS_MARKUP = "script-follows-markup"

NAMING_POLICY_MAJORITY = "majority"
NAMING_POLICY_SPEC = "spec"

# Placeholder value returned by synthesized handler stubs
STUB_RETURN_VALUE = "{ success: true }"

# Browser globals that look like window.<api>.<method>() but are not bridges
BROWSER_GLOBALS = frozenset({
    "localStorage",
    "sessionStorage",
    "location",
    "document",
    "history",
    "navigator",
    "console",
    "performance",
    "screen",
    "crypto",
})
