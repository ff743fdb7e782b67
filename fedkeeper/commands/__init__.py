"""Click subcommands for fedkeeper; each module defines one command."""
