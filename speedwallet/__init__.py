"""speedwallet: HD key management for a Solana mobile wallet."""

__version__ = "0.1.0"
