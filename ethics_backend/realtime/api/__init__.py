from ethics_backend.realtime.api.broadcasting import BroadcastingController

__all__ = ["BroadcastingController"]
