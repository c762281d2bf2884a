"""
MDB coin changer service.

Drives an MDB coin changer behind a line-oriented serial bridge: tube
inventory, event polling, dispensing, exact change and amount requests.
"""

__version__ = "1.0.0"
