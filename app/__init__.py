# app/__init__.py
"""
微信公眾號聊天機器人：關鍵字回覆、OpenAI、圖靈機器人。
"""

__version__ = "1.0.0"
