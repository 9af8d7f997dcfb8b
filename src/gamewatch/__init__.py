"""Detect whether a game or its tools are running by polling the process table."""
