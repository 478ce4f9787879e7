"""Version information for Switchboard."""

# Version components
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0
VERSION_INFO = (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH)

# Dynamically construct version string
__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
__title__ = "switchboard"
__description__ = "Desktop agent that backs up, switches and monitors sign-in sessions of the Antigravity editor"
__author__ = "switchboard team"
__author_email__ = "team@switchboard.dev"
__license__ = "MIT"
__url__ = "https://github.com/switchboard-agent/switchboard"
__maintainer__ = "switchboard team"
__keywords__ = ["antigravity", "account", "session", "switcher", "desktop", "qt", "tray"]
