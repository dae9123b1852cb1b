"""txnflow: workflow template application engine for transaction coordination."""

__version__ = "0.1.0"
