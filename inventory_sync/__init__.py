"""Inventory consistency and OTA channel sync service."""
