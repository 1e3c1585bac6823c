"""Protocol interfaces for collaborators outside the domain core.

Using @runtime_checkable Protocol allows structural subtyping: any object
with matching methods can be passed in, which keeps the storage backend
swappable and easy to fake in tests.

Example:
    >>> from pitchmatch.interfaces import IVideoStorage
    >>> class MemoryStorage:
    ...     def __init__(self):
    ...         self.blobs = {}
    ...     def store(self, key, data, content_type):
    ...         self.blobs[key] = data
    ...         return f"memory://{key}"
    >>> isinstance(MemoryStorage(), IVideoStorage)
    True
"""

from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class IVideoStorage(Protocol):
    """Object storage that holds uploaded video files.

    The upload mechanism itself lives outside PitchMatch; the domain only
    needs the public URL of a stored object.
    """

    def store(self, key: str, data: bytes | BinaryIO, content_type: str) -> str:
        """Store an object and return its public URL.

        Args:
            key: Object key (unique per upload)
            data: File contents or a readable binary stream
            content_type: MIME type of the object

        Returns:
            Publicly reachable URL of the stored object
        """
        ...


__all__ = ["IVideoStorage"]
