"""
Reconciliation layer of dhcpmon.

Modules in this package provide the polling file watcher, the hosts-file
parser, the monitor that keeps every source's snapshot current
(`monitor.engine:Monitor`), and the `dhcpmon` command line.
"""

__all__ = ["engine", "watcher", "hosts", "cli"]
