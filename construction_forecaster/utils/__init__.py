"""Shared utilities: logging setup and UTC/date helpers."""
