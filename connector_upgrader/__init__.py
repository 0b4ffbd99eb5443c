"""
Connector package upgrader.

Upgrades the installed connector package of a CRM instance while keeping the
provider settings and custom connector files that an uninstall would destroy.
"""

__version__ = "1.0.0"
