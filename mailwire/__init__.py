"""mailwire - client side of SMTP submission and POP3 retrieval."""

__version__ = "0.1.0"
