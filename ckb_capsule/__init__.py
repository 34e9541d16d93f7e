"""Build, test and debug CKB smart contracts, with helpers for addresses, capacities and deployment plans."""

__version__ = "0.1.0"