"""
Glance - voice assistant overlay for smart-glasses sessions

This is the root package for Glance, containing shared utilities and the
assistant implementation that turns live transcripts into short text cards on
the wearer's display.

Core modules:
- assistant: Intent routing, calendar lookups, and conversation mode
- datetime_utils: Timezone helpers and display time formatting
- utils: Environment parsing helpers
"""

__version__ = "0.3.0"
