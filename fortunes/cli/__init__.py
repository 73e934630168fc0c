# CLI package for Fortunes
"""
Command-line front ends.

Commands:
    fortune  — Print a random quote from the weighted cabinet
    strfile  — Build or inspect a .dat index for a quote file
"""
