"""Journal ingestion.

This package runs journalctl, parses its export output into entries,
and hands them to sinks while checkpointing the cursor of each one.
"""
