"""
WhatsApp AI Bot - relays WhatsApp chats to a conversational AI backend.

Incoming messages are buffered per chat, flushed after a short quiet period,
answered by the selected AI provider (OpenAI GPT or Google Gemini) and sent
back as a sequence of paced WhatsApp messages.
"""

__version__ = "1.0.0"
