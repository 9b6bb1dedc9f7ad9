from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class RegisterChangedMessage(Message):
    """
    Fired by the register controller's listener whenever the cart, the camera
    session or the checkout phase changed. Triggers a refresh of the register screen.

    Posted at App level, so screens and widgets both get it
    """

    bubble = True


class ToastsChangedMessage(Message):
    """
    Fired when a toast was added or dismissed, listened to by the toast rack
    """

    bubble = True


class UnauthorizedMessage(Message):
    """
    Fired when the backend rejected the bearer credential
    must be fired from app level
    """

    bubble = True
