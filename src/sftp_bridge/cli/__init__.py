"""CLI for sftp-bridge."""
