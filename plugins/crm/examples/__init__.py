"""Runnable examples built on the CRM plugin."""
