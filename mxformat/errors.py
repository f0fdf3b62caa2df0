class FormatterConfigurationError(ValueError):
    """Error raised when a formatter is constructed with an unusable setting.

    This is a programming error rather than a data error, so it surfaces at construction time.
    """

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        self.message = f"Invalid formatter configuration - {setting}: {reason}"
        super().__init__(self.message)


class PayloadDecodeError(ValueError):
    """Error raised when an annotation payload cannot be decoded into its value type."""
