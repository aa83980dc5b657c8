"""Idle-clicker game backend: sharded storage, master data cache and game transactions."""
