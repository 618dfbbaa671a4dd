"""CLI subcommands for deptree."""
