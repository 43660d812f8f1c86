"""
Realtime (Socket.IO) module

The gateway lives in `mockmate.realtime.gateway`; it depends on the services
layer, which in turn imports the hub from here.
"""
from .server import sio, hub, ConnectionHub

__all__ = ["sio", "hub", "ConnectionHub"]
