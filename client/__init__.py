"""Client-side sync layer for preset lists.

Keeps a local list of presets responsive by applying user mutations
optimistically and reconciling them with the preset store API.
"""

from client.gateway import HttpPresetGateway, PresetGateway
from client.notifier import LoggingNotifier, Notifier
from client.state import ListScope, PresetListState, PresetView
from client.store import PresetListStore
from client.sync import PresetSyncController

__all__ = [
    "HttpPresetGateway",
    "ListScope",
    "LoggingNotifier",
    "Notifier",
    "PresetGateway",
    "PresetListState",
    "PresetListStore",
    "PresetSyncController",
    "PresetView",
]
