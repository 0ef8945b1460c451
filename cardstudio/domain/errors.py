# cardstudio/domain/errors.py


class CardStudioError(Exception):
    """Base class for recoverable editor errors. `message` is user-facing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TemplateNotReadyError(CardStudioError):
    def __init__(self, message: str = "Template not ready"):
        super().__init__(message)


class DecodeError(CardStudioError):
    pass


class EncodeError(CardStudioError):
    pass


class SaveError(CardStudioError):
    pass


class UnknownLayerError(CardStudioError):
    def __init__(self, layer_id: str):
        super().__init__(f"Text layer '{layer_id}' does not exist.")
        self.layer_id = layer_id


class UnknownTemplateError(CardStudioError):
    def __init__(self, template_id: str):
        super().__init__(f"Template '{template_id}' does not exist.")
        self.template_id = template_id
