"""
Exception types raised by the voice assistant core.
"""


class VoiceAssistantError(Exception):
    """Base exception for voice assistant errors."""
    pass


class ConfigurationMissingError(VoiceAssistantError):
    """A required credential or endpoint is not configured."""
    pass


class DeviceNotFoundError(VoiceAssistantError):
    """No device exists with the requested identifier."""
    pass


class DuplicateDeviceError(VoiceAssistantError):
    """A device with the same device_id is already registered."""
    pass
