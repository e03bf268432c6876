"""
M365 Admin CLI
==============
Command-line administration of Microsoft 365 and SharePoint Online through
Microsoft Graph and SharePoint REST endpoints.

Destructive commands prompt for confirmation unless --confirm is passed.
"""

__version__ = "1.0.0"
