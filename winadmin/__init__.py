"""Windows administration toolkit: Robocopy, netsh, Exchange, SharePoint, Graph and Intune helpers."""

__version__ = "1.0.0"
