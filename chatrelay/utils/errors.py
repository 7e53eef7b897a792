"""Exception hierarchy for ChatRelay."""


class ChatRelayError(Exception):
    """Base exception for all ChatRelay errors."""

    def __init__(self, message: str, hint: str | None = None):
        """
        Initialize exception with an optional hint.

        Args:
            message: Error message
            hint: Helpful hint for resolving the error (uses Python 3.11+ __notes__)
        """
        super().__init__(message)
        self.hint = hint
        if hint:
            if hasattr(self, "add_note"):
                self.add_note(hint)


class ConfigError(ChatRelayError):
    """Configuration-related errors (config.yaml, settings, missing keys)."""


class ResourceError(ChatRelayError):
    """External resources unavailable (model endpoint, search backend, storage)."""


class ProviderNotConfigured(ConfigError):
    """No model gateway is bound; the user must configure one first."""

    def __init__(self, message: str = "No AI provider configured", hint: str | None = None):
        super().__init__(
            message,
            hint=hint or "Configure a provider (base_url and model) before sending messages",
        )


class ModelNotFoundError(ConfigError):
    """Requested model not available."""

    def __init__(self, model_name: str, available: list[str] | None = None):
        message = f"Model '{model_name}' not found"
        hint = None
        if available:
            hint = f"Available models: {', '.join(available[:5])}"
            if len(available) > 5:
                hint += f" (and {len(available) - 5} more)"
        super().__init__(message, hint=hint)


class TransportError(ResourceError):
    """Network-level failure (connection refused, DNS, timeout). Safe to retry."""


class UpstreamError(ResourceError):
    """Endpoint reachable but returned a non-success status or a malformed body."""

    def __init__(self, message: str, status_code: int | None = None, hint: str | None = None):
        super().__init__(message, hint=hint)
        self.status_code = status_code


class StorageError(ResourceError):
    """Persistence backend failures."""


class ConversationNotFoundError(StorageError):
    """Referenced conversation does not exist."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation '{conversation_id}' not found")
        self.conversation_id = conversation_id
