"""SysDock command-line app."""
