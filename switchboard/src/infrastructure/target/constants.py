"""
Well-known names inside the Antigravity state database.
"""

# Database file inside <config>/Antigravity/User/globalStorage
STATE_DB_FILENAME = "state.vscdb"
STATE_DB_BACKUP_SUFFIX = ".backup"
ITEM_TABLE = "ItemTable"

# Keys this agent reads or writes; everything else is opaque.
AGENT_STATE_KEY = "jetskiStateSync.agentManagerInitState"
AUTH_STATUS_KEY = "antigravityAuthStatus"
ONBOARDING_KEY = "antigravityOnboarding"
ONBOARDING_DONE_VALUE = "true"
