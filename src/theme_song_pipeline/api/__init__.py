"""HTTP access for remote theme sources and the Jellyfin API.

Submodules:
    http -- httpx client factory, GET/HEAD helpers, streamed downloads
"""
