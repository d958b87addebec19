"""Upstream catalog access: authentication, queries, contracts and media helpers."""
