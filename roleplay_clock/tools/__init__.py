"""Operator tools for the roleplay clock."""
