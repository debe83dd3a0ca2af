"""
askbridge: AI chat backend for design-tool plugins.
Takes a question plus design context, asks a CLI-driven model (codex or
claude), and returns a structured answer while keeping short-lived history.
"""

__version__ = "0.1.0"
