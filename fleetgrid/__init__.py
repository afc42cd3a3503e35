"""fleetgrid - spreadsheet-style editing core for fleet maintenance records.

Headless grid engine (selection, fill, clipboard, row supply, batch
reconciliation) over a remote record store, plus the config / logging /
Excel import tooling around it.
"""

__version__ = "0.3.0"
