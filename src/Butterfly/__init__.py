"""
Butterfly local engine.

Settings persistence, mod folder state, archive installation, the mod
lifecycle engine, profiles, the Modding API installer and the command
surface used by the CLI.
"""
