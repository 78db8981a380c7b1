"""CLI subcommands for leakscope."""
