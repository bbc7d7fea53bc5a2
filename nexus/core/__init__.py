"""Orchestration core: balances, allowances, intents and the operation pipeline."""
