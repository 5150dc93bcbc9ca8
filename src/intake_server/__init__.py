"""intake_server — FastAPI REST API for the intake questionnaire SDK.

Exposes the Telegram login handshake (session, confirm, redeem), the
questionnaire schemas with server-side validation and preview, and the
submission relay to the operator chat.
"""
