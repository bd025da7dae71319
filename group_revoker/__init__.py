"""
Group Revoker
=============
Removes a single Entra ID user from every group they are a member of,
using app-only Microsoft Graph credentials.

The only write this tool performs is DELETE /groups/{id}/members/{id}/$ref.
"""

__version__ = "1.0.0"
__author__ = "Identity Operations"
