"""SCRIPTCUT command-line interface."""
