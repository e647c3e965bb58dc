"""Seatledger command line interface."""

from seatledger.cli.ledger import ledger_app

__all__ = ["ledger_app"]
