"""
Realtime app for WebSocket communication.

This app provides:
- Topic registry naming the channel-layer groups events are published on
- NotificationDispatcher, the best-effort fan-out of marketplace events
- WebSocket consumers for providers and request tracking
- JWT query-string authentication middleware for WebSocket connections

Usage:
    from realtime.dispatcher import NotificationDispatcher
    from realtime.topics import TopicRegistry
    from realtime.consumers import ProviderConsumer, RequestConsumer
"""
