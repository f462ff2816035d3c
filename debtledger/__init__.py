"""debtledger: debt and credit tracker with urgency ranking and recurring obligations."""

__version__ = "0.1.0"
