from .message.protocol import Message, ClientFrame

__all__ = ['Message', 'ClientFrame']
