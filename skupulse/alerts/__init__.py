"""
Alerts Module
"""
from .notifier import SlackNotifier, restock_message

__all__ = ["SlackNotifier", "restock_message"]
