DEEPGRAM_URL = "wss://api.deepgram.com/v1/listen"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# Messages surfaced to clients
MSG_SERVER_CONFIGURATION = "Server configuration error"
MSG_INVALID_MESSAGE = "Invalid message"
MSG_INTERNAL_ERROR = "Internal server error"
MSG_ALREADY_CONFIGURED = "Session already configured"
MSG_NOT_STREAMING = "Session is not streaming"
MSG_TRANSCRIPTION_FAILED = "Transcription service error"
MSG_TRANSCRIPTION_UNAVAILABLE = "Transcription service unavailable"
MSG_TRANSCRIPTION_CLOSED = "Transcription service closed the stream"
MSG_TRANSLATION_FAILED = "Translation failed"
