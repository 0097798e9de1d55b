"""Incremental build steps: dependency classification, task result markers,
up-to-date checks, composition, RPC linking and external build commands."""
