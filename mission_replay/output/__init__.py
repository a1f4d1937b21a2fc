"""Output sinks for rendered snapshots."""
