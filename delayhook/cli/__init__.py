"""Command line interface for DelayHook."""
