"""netreconcile - reconcile configuration entities on NETCONF/Junos devices."""

__version__ = "0.1.0"
