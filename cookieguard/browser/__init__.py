"""Playwright host adapters: snapshots, dispatch, change notifications."""
