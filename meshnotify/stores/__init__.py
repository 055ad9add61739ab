"""JSON-file implementations of the external stores."""

from meshnotify.stores.devices import JsonDeviceStore, JsonLocationStore
from meshnotify.stores.recipients import JsonRecipientStore
from meshnotify.stores.users import JsonUserDirectory

__all__ = [
    "JsonDeviceStore",
    "JsonLocationStore",
    "JsonRecipientStore",
    "JsonUserDirectory",
]
