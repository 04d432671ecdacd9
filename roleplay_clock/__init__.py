"""Roleplay clock Discord bot."""
