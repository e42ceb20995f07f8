"""SHIVA factor engine."""
